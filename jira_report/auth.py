from __future__ import annotations

import keyring

SERVICE = "jira-report"

def keychain_account(profile_name: str, jira_base_url: str) -> str:
    # One API token per Jira site and profile
    return f"{profile_name}::{jira_base_url.rstrip('/')}".lower()

def save_token(profile_name: str, jira_base_url: str, token: str) -> None:
    keyring.set_password(SERVICE, keychain_account(profile_name, jira_base_url), token)

def load_token(profile_name: str, jira_base_url: str) -> str | None:
    return keyring.get_password(SERVICE, keychain_account(profile_name, jira_base_url))

def require_token(profile_name: str, jira_base_url: str) -> str:
    token = load_token(profile_name, jira_base_url)
    if not token:
        raise LookupError(
            f"No API token found in keychain for profile '{profile_name}'. Run configure again."
        )
    return token
