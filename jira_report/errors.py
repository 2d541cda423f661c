"""Exception hierarchy raised by the Jira retrieval core."""

from __future__ import annotations

from typing import Optional, Sequence


class JiraReportError(Exception):
    """Base exception for all jira-report errors."""


class JiraHttpError(JiraReportError):
    """Jira answered with a non-success status that will not be retried."""

    def __init__(self, status_code: int, reason: str, url: str, body: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.url = url
        self.body = body
        super().__init__(f"Jira API error {status_code} {reason}. Url={url}. Body={body}")


class JiraEndpointNotFoundError(JiraHttpError):
    """The requested endpoint does not exist on this Jira installation (404)."""


class JiraConnectionError(JiraReportError):
    """Connectivity failure that outlived every retry attempt."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Could not reach Jira. Url={url}. {message}")


class JiraResponseError(JiraReportError):
    """A response body was empty or malformed where structure was expected."""


class UnresolvableFieldsError(JiraReportError):
    """Configured field names that match no field in the Jira catalog."""

    def __init__(self, fields: Sequence[str], hint: Optional[str] = None):
        self.fields = list(fields)
        message = "Unknown Jira field(s): " + ", ".join(self.fields)
        if hint:
            message += f". {hint}"
        super().__init__(message)
