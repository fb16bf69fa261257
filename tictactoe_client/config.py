# =============================================================================
# Tic-Tac-Toe Client -- Configuration
# =============================================================================

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .constants import CONNECTION_TIMEOUT, DEFAULT_URL, EVENT_QUEUE_SIZE, URL_ENV_VAR


def resolve_url(override: str | None = None) -> str:
    """Pick the server URL: explicit override, then environment, then default."""
    if override:
        return override
    return os.environ.get(URL_ENV_VAR) or DEFAULT_URL


@dataclass
class ClientConfig:
    """Client settings.

    Attributes:
        url: WebSocket endpoint of the game relay.
        open_timeout: Seconds allowed for the opening handshake.
        queue_size: Max Session updates buffered for async iteration.
            When full, the oldest update is dropped.
    """

    url: str = field(default_factory=resolve_url)
    open_timeout: float = CONNECTION_TIMEOUT
    queue_size: int = EVENT_QUEUE_SIZE

    @classmethod
    def from_env(cls, url: str | None = None) -> ClientConfig:
        return cls(url=resolve_url(url))
