from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

MISSING_VALUE = "-"
KEY_FIELD = "key"


@dataclass(frozen=True, eq=False)
class IssueKey:
    """Issue identifier such as ``APP-123``; compares and hashes case-insensitively."""

    value: str

    def __post_init__(self) -> None:
        text = (self.value or "").strip()
        if not text:
            raise ValueError("Issue key cannot be empty.")
        object.__setattr__(self, "value", text)

    @property
    def folded(self) -> str:
        return self.value.casefold()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, IssueKey):
            return self.folded == other.folded
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.folded)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FieldDefinition:
    id: str
    key: str
    name: str
    clause_names: Tuple[str, ...] = ()
    custom: bool = False

    @property
    def api_key(self) -> str:
        return self.key or self.id

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "FieldDefinition":
        field_id = str(raw.get("id") or "").strip()
        field_key = str(raw.get("key") or "").strip()
        clause_names = tuple(
            str(c).strip() for c in (raw.get("clauseNames") or []) if c is not None and str(c).strip()
        )
        custom = raw.get("custom")
        if custom is None:
            custom = (field_key or field_id).lower().startswith("customfield_")
        return cls(
            id=field_id,
            key=field_key,
            name=str(raw.get("name") or "").strip(),
            clause_names=clause_names,
            custom=bool(custom),
        )


@dataclass(frozen=True)
class ResolvedField:
    configured_name: str
    api_key: str


@dataclass(frozen=True)
class FieldResolution:
    resolved_fields: Tuple[ResolvedField, ...]
    aliases_by_api_field: Mapping[str, Tuple[str, ...]]

    def requested_api_fields(self) -> List[str]:
        """Canonical keys to request from search, in configured order, without ``key``."""
        seen = set()
        out: List[str] = []
        for rf in self.resolved_fields:
            if rf.api_key == KEY_FIELD:
                continue
            folded = rf.api_key.casefold()
            if folded not in seen:
                seen.add(folded)
                out.append(rf.api_key)
        return out


@dataclass(frozen=True)
class Issue:
    key: IssueKey
    fields: Mapping[str, str] = field(default_factory=dict)
    multi_fields: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Field names are matched case-insensitively.
        object.__setattr__(
            self, "fields", MappingProxyType({k.casefold(): v for k, v in self.fields.items()})
        )
        object.__setattr__(
            self,
            "multi_fields",
            MappingProxyType({k.casefold(): tuple(v) for k, v in self.multi_fields.items()}),
        )

    def get_field_value(self, field_name: str) -> str:
        name = (field_name or "").strip()
        if not name:
            return MISSING_VALUE
        if name.casefold() == KEY_FIELD:
            return str(self.key)
        value = self.fields.get(name.casefold())
        if value is None or not value.strip():
            return MISSING_VALUE
        return value.strip()

    def get_field_values(self, field_name: str) -> List[str]:
        """Individual values for grouping; array fields yield each item."""
        name = (field_name or "").strip()
        items = self.multi_fields.get(name.casefold()) if name else None
        if items:
            return list(items)
        return [self.get_field_value(name)]


@dataclass(frozen=True)
class SearchPage:
    issues: List[Dict[str, Any]]
    is_last: bool = False
    next_page_token: Optional[str] = None
    total: Optional[int] = None

    @property
    def has_next(self) -> bool:
        return bool(self.issues) and not self.is_last and bool((self.next_page_token or "").strip())

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SearchPage":
        issues = [i for i in (data.get("issues") or []) if isinstance(i, dict)]
        token = data.get("nextPageToken")
        total = data.get("total")
        return cls(
            issues=issues,
            is_last=data.get("isLast") is True,
            next_page_token=str(token) if token else None,
            total=total if isinstance(total, int) and not isinstance(total, bool) else None,
        )


@dataclass(frozen=True)
class SearchResult:
    issues: List[Issue]
    aliases_by_api_field: Mapping[str, Tuple[str, ...]]
