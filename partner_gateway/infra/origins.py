"""Origin allow-list and CORS settings."""

import logging
from typing import FrozenSet, Iterable, Optional
from urllib.parse import urlsplit

from partner_gateway.infra.config import Config

logger = logging.getLogger(__name__)

# Known external agent origins
AGENT_ORIGINS = (
    "https://chat.openai.com",
    "https://chatgpt.com",
)

# Frontend dev server default
FRONTEND_DEV_ORIGIN = "http://localhost:3000"

DEFAULT_PORTS = {"http": 80, "https": 443}

# CORS settings for allowed origins
ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Accept", "X-Correlation-Id", "X-Idempotency-Key", "X-SSE-Connection-ID"]
EXPOSED_HEADERS = ["X-Correlation-Id", "X-SSE-Connection-ID"]
PREFLIGHT_MAX_AGE = 600


def normalize_origin(value: Optional[str]) -> Optional[str]:
    """
    Normalize an origin or URL to ``scheme://host[:port]``.

    Scheme and host are lowercased and default ports dropped, so
    ``HTTPS://Example.com:443/path`` becomes ``https://example.com``.

    Returns:
        The normalized origin, or None when the value cannot be parsed
    """
    if not value:
        return None
    try:
        parts = urlsplit(value.strip())
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    host = parts.hostname
    if not scheme or not host:
        return None
    if ":" in host:
        host = f"[{host}]"
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


class AllowedOriginSet:
    """Immutable set of normalized origins; membership is exact-string only."""

    def __init__(self, origins: Iterable[str]):
        self._origins: FrozenSet[str] = frozenset(origins)

    @classmethod
    def from_config(cls, config: Config) -> "AllowedOriginSet":
        """
        Build the allow-list from static and configured entries.

        Sources, in order: local development origins for the configured ports,
        known agent origins, the frontend dev server, the configured site URL
        and the ``ALLOWED_ORIGINS`` list. Invalid configured entries are
        skipped with a warning.
        """
        origins = {
            f"http://localhost:{config.HTTP_PORT}",
            f"https://localhost:{config.HTTPS_PORT}",
            f"http://127.0.0.1:{config.HTTP_PORT}",
            f"https://127.0.0.1:{config.HTTPS_PORT}",
            FRONTEND_DEV_ORIGIN,
        }
        origins.update(AGENT_ORIGINS)

        configured = ([config.SITE_URL] if config.SITE_URL else []) + list(config.ALLOWED_ORIGINS)
        for entry in configured:
            normalized = normalize_origin(entry)
            if normalized is None:
                logger.warning("Ignoring invalid allowed origin", extra={"origin": entry})
                continue
            origins.add(normalized)

        # Static entries go through the same normalization (drops :80 / :443)
        return cls(filter(None, (normalize_origin(origin) for origin in origins)))

    def __contains__(self, origin: object) -> bool:
        return origin in self._origins

    def __iter__(self):
        return iter(sorted(self._origins))

    def __len__(self) -> int:
        return len(self._origins)

    def is_allowed(self, origin: Optional[str]) -> bool:
        """
        Check whether a request origin may call the gateway.

        An absent origin (same-origin, server-to-server or CLI caller) is
        always allowed. A present origin is normalized and must match an
        entry exactly; unparsable values are rejected.
        """
        if origin is None or origin == "":
            return True
        normalized = normalize_origin(origin)
        if normalized is None:
            return False
        return normalized in self._origins
