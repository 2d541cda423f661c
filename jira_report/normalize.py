"""Flattening of raw Jira field JSON into comparable display strings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import MISSING_VALUE, Issue, IssueKey

# Probed in this order on JSON objects (user, option, status, project, ...)
OBJECT_DISPLAY_PROPERTIES: Tuple[str, ...] = ("displayName", "name", "value", "key")

DATE_FIELDS = frozenset({"created", "updated"})


@dataclass(frozen=True)
class NormalizedValue:
    display: str
    items: Tuple[str, ...] = ()

    @property
    def is_multi(self) -> bool:
        return bool(self.items)


ABSENT = NormalizedValue(MISSING_VALUE)


def _is_absent(text: Optional[str]) -> bool:
    return text is None or not text.strip() or text.strip() == MISSING_VALUE


def _extract(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return None if _is_absent(value) else value.strip()
    if isinstance(value, list):
        items = _extract_items(value)
        return ", ".join(items) if items else None
    if isinstance(value, dict):
        for prop in OBJECT_DISPLAY_PROPERTIES:
            if prop not in value:
                continue
            text = _extract(value[prop])
            if not _is_absent(text):
                return text
        return None
    return None


def _extract_items(values: Iterable[Any]) -> List[str]:
    seen = set()
    out: List[str] = []
    for v in values:
        text = _extract(v)
        if _is_absent(text):
            continue
        folded = text.casefold()
        if folded not in seen:
            seen.add(folded)
            out.append(text)
    return out


def is_date_field(field_key: str) -> bool:
    return (field_key or "").strip().casefold() in DATE_FIELDS


def format_date(text: str) -> str:
    """Reduce an ISO-8601 timestamp to ``YYYY-MM-DD``; other text is returned as-is."""
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return text
    return parsed.strftime("%Y-%m-%d")


def normalize_field_value(field_key: str, raw: Any) -> NormalizedValue:
    if isinstance(raw, list):
        items = _extract_items(raw)
        if not items:
            return ABSENT
        if is_date_field(field_key):
            items = _extract_items(format_date(i) for i in items)
        return NormalizedValue(", ".join(items), tuple(items))

    text = _extract(raw)
    if _is_absent(text):
        return ABSENT
    if is_date_field(field_key):
        text = format_date(text)
    return NormalizedValue(text)


def map_issue(
    raw: Dict[str, Any],
    aliases_by_api_field: Mapping[str, Sequence[str]],
) -> Optional[Issue]:
    key = raw.get("key")
    if not isinstance(key, str) or not key.strip():
        return None

    aliases = {k.casefold(): v for k, v in aliases_by_api_field.items()}
    fields: Dict[str, str] = {}
    multi_fields: Dict[str, Tuple[str, ...]] = {}

    raw_fields = raw.get("fields")
    if isinstance(raw_fields, dict):
        for field_key, raw_value in raw_fields.items():
            field_key = str(field_key).strip()
            if not field_key:
                continue
            normalized = normalize_field_value(field_key, raw_value)
            for name in (field_key, *aliases.get(field_key.casefold(), ())):
                fields[name] = normalized.display
                if normalized.is_multi:
                    multi_fields[name] = normalized.items

    return Issue(IssueKey(key), fields, multi_fields)


def map_issues(
    raw_issues: Iterable[Dict[str, Any]],
    aliases_by_api_field: Mapping[str, Sequence[str]],
) -> List[Issue]:
    """Normalize one page of raw issues; keyless payloads are dropped."""
    out: List[Issue] = []
    for raw in raw_issues:
        issue = map_issue(raw, aliases_by_api_field)
        if issue is not None:
            out.append(issue)
    return out
