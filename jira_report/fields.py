"""Resolution of configured field names to Jira's canonical field keys.

Jira exposes one logical field under several names: the id
(``customfield_10001``), the display name (``Story Points``) and one or more
JQL clause names (``cf[10001]``, ``"Story Points"``). Reports may be
configured with any of them, so every name is indexed back to the canonical
key, and the names a report actually used are kept as aliases so the issue
rows answer to all of them.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import JiraResponseError, UnresolvableFieldsError
from .models import KEY_FIELD, FieldDefinition, FieldResolution, ResolvedField
from .transport import JiraTransport

log = logging.getLogger(__name__)

FIELD_CATALOG_PATH = "rest/api/3/field"

PRIORITY_ID = 3
PRIORITY_CLAUSE_NAME = 2
PRIORITY_DISPLAY_NAME = 1

_WHITESPACE_RUN = re.compile(r"\s+")
_BRACKET_SUFFIX = re.compile(r"\s+\[[^\[\]]*\]$")
_QUOTES = "\"'"


@dataclass(frozen=True)
class AliasCandidate:
    api_key: str
    priority: int
    custom: bool


def _prefer_candidate(current: AliasCandidate, candidate: AliasCandidate) -> bool:
    """True when ``candidate`` should replace ``current`` for a shared alias."""
    if candidate.priority != current.priority:
        return candidate.priority > current.priority
    return current.custom and not candidate.custom


def simplify_alias(alias: str) -> str:
    """Strip wrapping quotes, collapse whitespace and drop a trailing `` [...]`` suffix."""
    text = (alias or "").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in _QUOTES:
        text = text[1:-1]
    text = _WHITESPACE_RUN.sub(" ", text).strip()
    return _BRACKET_SUFFIX.sub("", text).strip()


def _register(index: Dict[str, AliasCandidate], alias: str, candidate: AliasCandidate) -> None:
    folded = alias.casefold()
    if not folded:
        return
    current = index.get(folded)
    if current is None or _prefer_candidate(current, candidate):
        index[folded] = candidate


class FieldCatalog:
    """Field definitions plus exact and simplified alias indexes."""

    def __init__(self, definitions: Iterable[FieldDefinition]):
        self.definitions: Tuple[FieldDefinition, ...] = tuple(definitions)
        self._exact: Dict[str, AliasCandidate] = {}
        self._simplified: Dict[str, AliasCandidate] = {}

        for d in self.definitions:
            if not d.api_key:
                continue
            aliases: List[Tuple[str, int]] = [(d.id, PRIORITY_ID), (d.key, PRIORITY_ID)]
            aliases += [(c, PRIORITY_CLAUSE_NAME) for c in d.clause_names]
            aliases.append((d.name, PRIORITY_DISPLAY_NAME))

            for alias, priority in aliases:
                if not alias:
                    continue
                candidate = AliasCandidate(d.api_key, priority, d.custom)
                _register(self._exact, alias.strip(), candidate)
                _register(self._simplified, simplify_alias(alias), candidate)

    def lookup(self, name: str) -> Optional[str]:
        candidate = self._exact.get(name.strip().casefold())
        if candidate is None:
            candidate = self._simplified.get(simplify_alias(name).casefold())
        return candidate.api_key if candidate else None

    @classmethod
    def from_api(cls, payload: Any) -> "FieldCatalog":
        if not isinstance(payload, list):
            raise JiraResponseError("Jira field catalog response is empty or not a list.")
        return cls(FieldDefinition.from_api(raw) for raw in payload if isinstance(raw, dict))


def clean_field_names(configured_fields: Optional[Sequence[str]]) -> List[str]:
    """Trim, drop blanks and drop case-insensitive duplicates, keeping order."""
    seen = set()
    out: List[str] = []
    for raw in configured_fields or []:
        if raw is None:
            continue
        name = str(raw).strip()
        if not name or name.casefold() in seen:
            continue
        seen.add(name.casefold())
        out.append(name)
    return out


def _failed(task: asyncio.Future) -> bool:
    return task.done() and (task.cancelled() or task.exception() is not None)


class FieldAliasResolver:
    def __init__(self, transport: JiraTransport):
        self._transport = transport
        self._catalog_task: Optional[asyncio.Future] = None

    async def catalog(self) -> FieldCatalog:
        # Concurrent first callers share one fetch; a failed fetch is not cached.
        # Cancelling one caller leaves the shared fetch running for the others.
        if self._catalog_task is None:
            self._catalog_task = asyncio.ensure_future(self._fetch_catalog())
        task = self._catalog_task
        try:
            return await asyncio.shield(task)
        except BaseException:
            if self._catalog_task is task and _failed(task):
                self._catalog_task = None
            raise

    async def _fetch_catalog(self) -> FieldCatalog:
        payload = await self._transport.get_json(FIELD_CATALOG_PATH)
        catalog = FieldCatalog.from_api(payload)
        log.debug("Loaded %d Jira field definitions", len(catalog.definitions))
        return catalog

    async def list_fields(self) -> List[FieldDefinition]:
        catalog = await self.catalog()
        return sorted(catalog.definitions, key=lambda d: (d.name.casefold(), d.api_key))

    async def resolve(self, configured_fields: Optional[Sequence[str]]) -> FieldResolution:
        resolved: List[ResolvedField] = []
        unresolved: List[str] = []
        catalog: Optional[FieldCatalog] = None

        for name in clean_field_names(configured_fields):
            if name.casefold() == KEY_FIELD:
                resolved.append(ResolvedField(name, KEY_FIELD))
                continue

            if catalog is None:
                catalog = await self.catalog()
            api_key = catalog.lookup(name)
            if api_key is None:
                unresolved.append(name)
            else:
                resolved.append(ResolvedField(name, api_key))

        if unresolved:
            raise UnresolvableFieldsError(
                unresolved, hint="Use a field id, name or JQL clause name from the `fields` command."
            )

        aliases: Dict[str, List[str]] = {}
        for rf in resolved:
            if rf.api_key == KEY_FIELD:
                continue
            aliases.setdefault(rf.api_key, []).append(rf.configured_name)

        return FieldResolution(
            resolved_fields=tuple(resolved),
            aliases_by_api_field={k: tuple(v) for k, v in aliases.items()},
        )
