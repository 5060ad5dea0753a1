"""Endpoint definitions - URL templates with an optional major parameter.

The major parameter is the URL segment that selects the rate-limit bucket
(e.g. the channel id in /channels/{}/messages). Endpoint catalogues belong to
higher-level API code; this module only defines the interface requests rely
on plus a generic template implementation.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class Endpoint(Protocol):
    """What a request needs from an endpoint definition."""

    @property
    def major_parameter_position(self) -> int | None: ...

    def full_url(self, url_parameters: Sequence[str]) -> str: ...


@dataclass(frozen=True)
class RestEndpoint:
    """A path template with positional ``{}`` placeholders.

    Usage:
        CHANNEL_MESSAGES = RestEndpoint("/channels/{}/messages", major_parameter_position=0)
        url = CHANNEL_MESSAGES.bind("https://chat.example.com/api").full_url(["123"])
    """

    path: str
    major_parameter_position: int | None = None
    base_url: str | None = None

    @property
    def placeholder_count(self) -> int:
        return self.path.count("{}")

    def bind(self, base_url: str) -> RestEndpoint:
        """Return a copy rooted at base_url. Already-bound endpoints are kept."""
        if self.base_url is not None:
            return self
        return replace(self, base_url=base_url)

    def full_url(self, url_parameters: Sequence[str]) -> str:
        """Substitute url_parameters positionally into the path template.

        Surplus parameters are ignored.

        Raises:
            ValueError: If fewer parameters than placeholders are given.
        """
        expected = self.placeholder_count
        if len(url_parameters) < expected:
            raise ValueError(
                f"Endpoint '{self.path}' expects {expected} URL parameters, "
                f"got {len(url_parameters)}"
            )
        path = self.path.format(*[str(p) for p in url_parameters[:expected]])
        if self.base_url is None:
            return path
        return self.base_url.rstrip("/") + "/" + path.lstrip("/")

    def __str__(self) -> str:
        return self.path
