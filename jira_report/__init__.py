"""Jira Cloud JQL reporting: field alias resolution, paginated search, value normalization."""

from .errors import (
    JiraConnectionError,
    JiraEndpointNotFoundError,
    JiraHttpError,
    JiraReportError,
    JiraResponseError,
    UnresolvableFieldsError,
)
from .fields import FieldAliasResolver
from .jira_client import JiraClient, open_jira_client, search_issues
from .models import Issue, IssueKey, SearchResult
from .retry import RetryPolicy
from .transport import JiraTransport

__all__ = [
    "FieldAliasResolver",
    "Issue",
    "IssueKey",
    "JiraClient",
    "JiraConnectionError",
    "JiraEndpointNotFoundError",
    "JiraHttpError",
    "JiraReportError",
    "JiraResponseError",
    "JiraTransport",
    "RetryPolicy",
    "SearchResult",
    "UnresolvableFieldsError",
    "open_jira_client",
    "search_issues",
]
