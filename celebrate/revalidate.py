"""
Invalidation of cached frontend pages after a successful mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests

logger = logging.getLogger(__name__)


class PathInvalidator(Protocol):
    def invalidate(self, paths: list[str]) -> None:
        ...


class LoggingInvalidator:
    """Used when no frontend revalidation endpoint is configured."""

    def invalidate(self, paths: list[str]) -> None:
        if paths:
            logger.info("Pages to revalidate: %s", ", ".join(paths))


@dataclass
class WebhookInvalidator:
    """Posts changed paths to the frontend's revalidation endpoint."""

    endpoint: str
    secret: Optional[str] = None

    def invalidate(self, paths: list[str]) -> None:
        if not paths:
            return
        payload = {"paths": paths}
        if self.secret:
            payload["secret"] = self.secret
        try:
            requests.post(self.endpoint, json=payload)
        except requests.RequestException as exc:
            logger.warning("Revalidation webhook failed: %s", exc)


@dataclass
class RecordingInvalidator:
    """Test double remembering every invalidated path."""

    paths: list[str] = field(default_factory=list)

    def invalidate(self, paths: list[str]) -> None:
        self.paths.extend(paths)
