"""Internal data models for chatrest.

Configuration and payload models use Pydantic v2. RestMethod is a plain str
Enum so it can be compared against raw strings from the CLI or callers.
"""

from __future__ import annotations

import os
import sys
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# HTTP Methods
# =============================================================================


class RestMethod(str, Enum):
    """HTTP methods supported by the chat platform REST API."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


def coerce_method(value: RestMethod | str) -> RestMethod | str:
    """Return the RestMethod for a known verb, else the upper-cased string.

    Unknown verbs are kept as-is so that dispatch can reject them with
    UnsupportedMethodError when the request actually runs.
    """
    if isinstance(value, RestMethod):
        return value
    upper = str(value).upper()
    try:
        return RestMethod(upper)
    except ValueError:
        return upper


# =============================================================================
# Multipart Payloads
# =============================================================================


class MultipartField(BaseModel):
    """One part of a multipart/form-data body.

    A part without a filename and with a str value is sent as a plain form
    field. Anything else is sent as a file part.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(description="Form field name")
    value: str | bytes = Field(description="Field value or file content")
    filename: str | None = Field(default=None, description="Filename for file parts")
    content_type: str | None = Field(default=None, description="Content-Type of a file part")

    @property
    def is_file(self) -> bool:
        return self.filename is not None or isinstance(self.value, bytes)


class MultipartBody(BaseModel):
    """Structured multipart/form-data payload, e.g. a message with attachments."""

    model_config = ConfigDict(extra="forbid")

    parts: list[MultipartField] = Field(default_factory=list, description="Parts in order")

    def add_field(self, name: str, value: str) -> Self:
        self.parts.append(MultipartField(name=name, value=value))
        return self

    def add_file(
        self,
        name: str,
        filename: str,
        content: bytes | str,
        content_type: str | None = None,
    ) -> Self:
        self.parts.append(
            MultipartField(name=name, value=content, filename=filename, content_type=content_type)
        )
        return self

    def to_httpx(self) -> tuple[dict[str, list[str]], list[tuple[str, Any]]]:
        """Split parts into httpx ``data`` and ``files`` arguments.

        Returns:
            Tuple of (data, files). Repeated form field names keep every value.
        """
        data: dict[str, list[str]] = {}
        files: list[tuple[str, Any]] = []
        for part in self.parts:
            if part.is_file:
                content = part.value.encode("utf-8") if isinstance(part.value, str) else part.value
                filename = part.filename or part.name
                if part.content_type:
                    files.append((part.name, (filename, content, part.content_type)))
                else:
                    files.append((part.name, (filename, content)))
            else:
                data.setdefault(part.name, []).append(part.value)
        return data, files


# =============================================================================
# Diagnostics
# =============================================================================


_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


def _find_call_site() -> str | None:
    """Describe the first stack frame outside this package."""
    frame = sys._getframe(1)
    while frame is not None:
        filename = frame.f_code.co_filename
        if os.path.dirname(os.path.abspath(filename)) != _PACKAGE_DIR:
            return f"{filename}:{frame.f_lineno} in {frame.f_code.co_name}"
        frame = frame.f_back
    return None


class OriginContext(BaseModel):
    """Where and when a request was built.

    Failures surface on a worker thread long after the caller's stack is
    gone, so this snapshot is taken at build time and attached to every
    classified error.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    correlation_id: str = Field(description="Unique id for log correlation")
    created_at: datetime = Field(description="UTC time the request was built")
    method: str = Field(description="HTTP method of the request")
    endpoint: str = Field(description="Endpoint path template")
    call_site: str | None = Field(default=None, description="file:line in function of the caller")

    @classmethod
    def capture(cls, method: RestMethod | str, endpoint: str) -> OriginContext:
        return cls(
            correlation_id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc),
            method=method.value if isinstance(method, RestMethod) else str(method),
            endpoint=endpoint,
            call_site=_find_call_site(),
        )

    def __str__(self) -> str:
        location = f" at {self.call_site}" if self.call_site else ""
        return f"{self.method} {self.endpoint} [{self.correlation_id}]{location}"


# =============================================================================
# Runtime Configuration
# =============================================================================


DEFAULT_MAX_RETRIES = 50


class ClientConfig(BaseModel):
    """Connection settings for the chat platform REST API."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(description="API base URL, e.g. https://chat.example.com/api/v10")
    token: str | None = Field(
        default=None,
        description="Value of the Authorization header (supports ${ENV_VAR} substitution)",
    )
    user_agent: str = Field(default="chatrest (python)", description="User-Agent header")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    default_max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES, description="Rate-limit retries for new requests"
    )
    verify_ssl: bool = Field(default=True, description="Verify the server certificate")
    ca_bundle: str | None = Field(default=None, description="Path to a CA bundle")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra static headers")

    @field_validator("default_max_retries")
    @classmethod
    def check_max_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("default_max_retries cannot be less than 0")
        return value


class LoggingConfig(BaseModel):
    """Logging settings applied by the CLI."""

    model_config = ConfigDict(extra="forbid")

    level: str = Field(default="WARNING", description="Root log level name")

    @field_validator("level")
    @classmethod
    def check_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{value}'")
        return upper


class RuntimeConfig(BaseModel):
    """Top-level runtime configuration file structure."""

    model_config = ConfigDict(extra="forbid")

    client: ClientConfig = Field(description="REST client settings")
    logging: LoggingConfig | None = Field(default=None, description="Logging settings")
