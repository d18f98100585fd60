"""
ConnectorRegistry — Provider → connector dispatch table.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from connectors.base import BaseConnector
from connectors.catalog import Provider
from connectors.github import GitHubConnector
from connectors.google import GoogleConnector
from connectors.jira import JiraConnector
from connectors.slack import SlackConnector

logger = logging.getLogger(__name__)


def default_connectors() -> List[BaseConnector]:
    """All known connectors — add new ones here."""
    return [
        GitHubConnector(),
        SlackConnector(),
        GoogleConnector(),
        JiraConnector(),
    ]


class ConnectorRegistry:
    """Maps each ``Provider`` to the connector implementing its OAuth flow."""

    def __init__(self, connectors: Optional[Iterable[BaseConnector]] = None) -> None:
        self._connectors: Dict[Provider, BaseConnector] = {}
        for conn in connectors if connectors is not None else default_connectors():
            self.register(conn)

    def register(self, connector: BaseConnector) -> None:
        if connector.provider in self._connectors:
            logger.warning("Replacing connector for %s", connector.provider.value)
        self._connectors[connector.provider] = connector
        logger.debug("Connector registered: %s (%s)", connector.display_name, connector.provider.value)

    def get(self, provider: Provider) -> BaseConnector:
        """Connector for ``provider``; a missing entry is a wiring bug (KeyError)."""
        try:
            return self._connectors[provider]
        except KeyError:
            raise KeyError(f"No connector registered for provider {provider!r}") from None

    def providers(self) -> List[Provider]:
        return list(self._connectors)
