"""
Provider catalog — static OAuth2 metadata for every supported provider.

The set of providers is closed; asking for an unknown one is a
programming error, not a runtime condition.
"""

from __future__ import annotations

from enum import Enum
from typing import List, NamedTuple


class ProviderUrls(NamedTuple):
    authorization_url: str
    token_url: str
    default_scopes: str


class Provider(str, Enum):
    GITHUB = "github"
    SLACK = "slack"
    GOOGLE = "google"
    JIRA = "jira"

    @property
    def display_name(self) -> str:
        return _CATALOG[self]["display_name"]

    @property
    def domain(self) -> str:
        return _CATALOG[self]["domain"]

    @property
    def authorization_url(self) -> str:
        return _CATALOG[self]["authorization_url"]

    @property
    def token_url(self) -> str:
        return _CATALOG[self]["token_url"]

    @property
    def default_scopes(self) -> str:
        """Comma-separated scope list."""
        return _CATALOG[self]["default_scopes"]

    @classmethod
    def parse(cls, value: "str | Provider") -> "Provider":
        """Accept 'github', 'GITHUB' or a Provider; raise ValueError otherwise."""
        if isinstance(value, Provider):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown provider '{value}'") from None


_CATALOG = {
    Provider.GITHUB: {
        "display_name": "GitHub",
        "domain": "github.com",
        "authorization_url": "https://github.com/login/oauth/authorize",
        "token_url": "https://github.com/login/oauth/access_token",
        "default_scopes": "repo,user,read:org",
    },
    Provider.SLACK: {
        "display_name": "Slack",
        "domain": "slack.com",
        "authorization_url": "https://slack.com/oauth/v2/authorize",
        "token_url": "https://slack.com/api/oauth.v2.access",
        "default_scopes": "channels:read,chat:write,users:read,team:read",
    },
    Provider.GOOGLE: {
        "display_name": "Google",
        "domain": "google.com",
        "authorization_url": "https://accounts.google.com/o/oauth2/v2/auth",
        "token_url": "https://oauth2.googleapis.com/token",
        "default_scopes": (
            "https://www.googleapis.com/auth/drive.file,"
            "https://www.googleapis.com/auth/calendar.events"
        ),
    },
    Provider.JIRA: {
        "display_name": "JIRA",
        "domain": "atlassian.net",
        "authorization_url": "https://auth.atlassian.com/authorize",
        "token_url": "https://auth.atlassian.com/oauth/token",
        "default_scopes": "read:jira-work,write:jira-work,read:jira-user,offline_access",
    },
}


def urls_for(provider: Provider) -> ProviderUrls:
    """Authorization endpoint, token endpoint and default scopes for ``provider``."""
    entry = _CATALOG[Provider.parse(provider)]
    return ProviderUrls(
        authorization_url=entry["authorization_url"],
        token_url=entry["token_url"],
        default_scopes=entry["default_scopes"],
    )


def split_scopes(scopes: str) -> List[str]:
    """Split a stored scope string on commas and/or whitespace."""
    return [s for s in scopes.replace(",", " ").split() if s]


def list_providers() -> List[dict]:
    return [
        {
            "provider": p.value,
            "display_name": p.display_name,
            "domain": p.domain,
            "default_scopes": split_scopes(p.default_scopes),
        }
        for p in Provider
    ]
