from __future__ import annotations

from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml

APP_DIR = Path.home() / ".jira-report"
PROFILES_DIR = APP_DIR / "profiles"

DEFAULT_MAX_RESULTS_PER_PAGE = 100
DEFAULT_RETRY_COUNT = 3
DEFAULT_TIMEOUT_SECONDS = 60.0

def ensure_app_dirs() -> None:
    PROFILES_DIR.mkdir(parents=True, exist_ok=True)

@dataclass
class ReportConfig:
    name: str
    jql: str
    output_fields: List[str] = field(default_factory=list)
    count_fields: List[str] = field(default_factory=list)
    pdf_report_name: Optional[str] = None

    @property
    def title(self) -> str:
        return (self.pdf_report_name or self.name).strip()

@dataclass
class ReportProfile:
    name: str
    jira_base_url: str
    email: str

    # Search tuning
    max_results_per_page: int = DEFAULT_MAX_RESULTS_PER_PAGE
    retry_count: int = DEFAULT_RETRY_COUNT
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    # Named reports
    reports: List[ReportConfig] = field(default_factory=list)

    def validate(self) -> None:
        errors = []
        if not self.jira_base_url.strip().lower().startswith(("http://", "https://")):
            errors.append("jira_base_url must be an http(s) URL")
        if not self.email.strip():
            errors.append("email is required")
        if not 1 <= self.max_results_per_page <= 100:
            errors.append("max_results_per_page must be between 1 and 100")
        if not 0 <= self.retry_count <= 10:
            errors.append("retry_count must be between 0 and 10")
        if self.timeout_seconds <= 0:
            errors.append("timeout_seconds must be positive")

        seen = set()
        for r in self.reports:
            if not r.name.strip():
                errors.append("every report needs a name")
                continue
            if r.name.strip().casefold() in seen:
                errors.append(f"duplicate report name '{r.name}'")
            seen.add(r.name.strip().casefold())
            if not r.jql.strip():
                errors.append(f"report '{r.name}' has an empty jql")

        if errors:
            raise ValueError(f"Invalid profile '{self.name}': " + "; ".join(errors))

    def find_report(self, report_name: str) -> ReportConfig:
        wanted = report_name.strip().casefold()
        for r in self.reports:
            if r.name.strip().casefold() == wanted:
                return r
        known = ", ".join(r.name for r in self.reports) or "none"
        raise KeyError(f"Report '{report_name}' not found in profile '{self.name}' (known: {known})")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportProfile":
        data = dict(data)
        reports = [ReportConfig(**r) for r in (data.pop("reports", None) or [])]
        return cls(reports=reports, **data)

def profile_path(profile_name: str) -> Path:
    ensure_app_dirs()
    return PROFILES_DIR / f"{profile_name}.yaml"

def save_profile(profile: ReportProfile) -> None:
    ensure_app_dirs()
    p = profile_path(profile.name)
    with p.open("w", encoding="utf-8") as f:
        yaml.safe_dump(asdict(profile), f, sort_keys=False)

def load_profile(profile_name: str) -> ReportProfile:
    p = profile_path(profile_name)
    if not p.exists():
        raise FileNotFoundError(
            f"Profile '{profile_name}' not found at {p}. Run: jira-report configure {profile_name}"
        )
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    profile = ReportProfile.from_dict(data)
    profile.validate()
    return profile
