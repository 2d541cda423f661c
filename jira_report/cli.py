from __future__ import annotations

import asyncio
import getpass
import logging
from typing import List, Optional

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .auth import require_token, save_token
from .config import ReportConfig, ReportProfile, load_profile, profile_path, save_profile
from .errors import JiraReportError
from .jira_client import open_jira_client
from .report import (
    build_report,
    render_report,
    requested_fields,
    resolve_count_fields,
    resolve_output_fields,
)
from .transport import normalize_base_url

app = typer.Typer(add_completion=False)
console = Console()

@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log Jira requests and retries.")):
    """
    Query Jira Cloud with JQL and print a normalized issue report.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False, console=Console(stderr=True))],
    )

def _load(profile: str) -> tuple[ReportProfile, str]:
    try:
        prof = load_profile(profile)
        token = require_token(profile, prof.jira_base_url)
    except (FileNotFoundError, ValueError, LookupError) as exc:
        raise typer.BadParameter(str(exc)) from exc
    return prof, token

def _client(prof: ReportProfile, token: str):
    return open_jira_client(
        prof.jira_base_url,
        prof.email,
        token,
        max_results_per_page=prof.max_results_per_page,
        retry_count=prof.retry_count,
        timeout=prof.timeout_seconds,
    )

def _fail(exc: Exception) -> typer.Exit:
    print("[red]Failed to generate Jira report.[/red]")
    print(escape(str(exc)))
    return typer.Exit(code=1)

@app.command()
def configure(profile: str):
    """
    Create/update a profile and store its Jira API token in the OS keychain.
    """
    existing: Optional[ReportProfile] = None
    if profile_path(profile).exists():
        existing = load_profile(profile)

    jira_base_url = normalize_base_url(typer.prompt(
        "Jira base URL (e.g. https://your-company.atlassian.net)",
        default=existing.jira_base_url if existing else None,
    ))
    email = typer.prompt("Jira e-mail (the account used with the API token)",
                         default=existing.email if existing else None)
    max_results = typer.prompt("Issues per page (1-100)", default=100, type=int)
    retry_count = typer.prompt("Retries for transient failures (0-10)", default=3, type=int)

    token = getpass.getpass("Jira API token (input hidden): ").strip()
    if not token:
        raise typer.BadParameter("Token cannot be empty.")

    profile_obj = ReportProfile(
        name=profile,
        jira_base_url=jira_base_url,
        email=email,
        max_results_per_page=max_results,
        retry_count=retry_count,
        reports=existing.reports if existing else [],
    )
    try:
        profile_obj.validate()
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    save_profile(profile_obj)
    save_token(profile, jira_base_url, token)

    print(f"[green]Saved profile[/green] {profile} and stored token in keychain.")
    print(f"Add named reports under 'reports:' in {profile_path(profile)}")

@app.command()
def whoami(profile: str):
    """
    Validate credentials by calling Jira Cloud 'myself' endpoint.
    """
    prof, token = _load(profile)

    async def run():
        async with _client(prof, token) as jira:
            return await jira.myself()

    try:
        data = asyncio.run(run())
    except JiraReportError as exc:
        print("[red]Auth failed.[/red]")
        print(escape(str(exc)))
        raise typer.Exit(code=1)

    print("[green]Auth OK[/green]")
    print(f"User: {data.get('displayName')}")
    print(f"AccountId: {data.get('accountId')}")

@app.command()
def fields(
    profile: str,
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Only show fields matching this text."),
):
    """
    List the Jira field catalog: ids, names and JQL clause names usable in reports.
    """
    prof, token = _load(profile)

    async def run():
        async with _client(prof, token) as jira:
            return await jira.resolver.list_fields()

    try:
        definitions = asyncio.run(run())
    except JiraReportError as exc:
        raise _fail(exc)

    needle = (search or "").strip().casefold()
    table = Table()
    table.add_column("Key", no_wrap=True)
    table.add_column("Name")
    table.add_column("Clause names")
    table.add_column("Custom")
    for d in definitions:
        haystack = " ".join((d.api_key, d.name, *d.clause_names)).casefold()
        if needle and needle not in haystack:
            continue
        table.add_row(
            escape(d.api_key),
            escape(d.name),
            escape(", ".join(d.clause_names)),
            "yes" if d.custom else "",
        )
    console.print(table)

@app.command()
def report(
    profile: str,
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Named report from the profile."),
    jql: Optional[str] = typer.Option(None, "--jql", "-q", help="Ad-hoc JQL query."),
    field: List[str] = typer.Option([], "--field", "-f", help="Output field (repeatable)."),
    count: List[str] = typer.Option([], "--count", "-c", help="Group-by count field (repeatable)."),
):
    """
    Run a JQL report and print the issues with grouped counts.
    """
    prof, token = _load(profile)

    if not name and not jql:
        if prof.reports:
            name = typer.prompt(
                "Report name (" + ", ".join(r.name for r in prof.reports) + ")",
                default=prof.reports[0].name,
            )
        else:
            jql = typer.prompt("JQL query")

    selected: Optional[ReportConfig] = None
    if name:
        try:
            selected = prof.find_report(name)
        except KeyError as exc:
            raise typer.BadParameter(exc.args[0]) from exc

    query = jql or (selected.jql if selected else "")
    output_fields = resolve_output_fields(field or (selected.output_fields if selected else None))
    count_fields = resolve_count_fields(count or (selected.count_fields if selected else None))

    async def run():
        async with _client(prof, token) as jira:
            with console.status("Loading issues from Jira..."):
                return await jira.search(query, requested_fields(output_fields, count_fields))

    try:
        result = asyncio.run(run())
    except (JiraReportError, ValueError) as exc:
        raise _fail(exc)

    jql_report = build_report(
        selected.title if selected else None,
        query,
        result.issues,
        count_fields,
        config_name=selected.name if selected else None,
    )
    render_report(console, jql_report, output_fields)

if __name__ == "__main__":
    app()
