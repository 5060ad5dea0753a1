"""Tests for chatrest.models.

Tests cover:
- Method coercion
- Multipart body splitting for httpx
- OriginContext capture
- Configuration validation
"""

import pytest
from pydantic import ValidationError

from chatrest.models import (
    ClientConfig,
    LoggingConfig,
    MultipartBody,
    MultipartField,
    OriginContext,
    RestMethod,
    RuntimeConfig,
    coerce_method,
)


class TestCoerceMethod:
    @pytest.mark.parametrize("value", ["get", "GET", "Get", RestMethod.GET])
    def test_known_methods(self, value) -> None:
        assert coerce_method(value) is RestMethod.GET

    def test_unknown_method_kept_upper_cased(self) -> None:
        assert coerce_method("options") == "OPTIONS"

    def test_str_enum_compares_to_string(self) -> None:
        assert RestMethod.PATCH == "PATCH"


class TestMultipartBody:
    def test_fields_and_files_split(self) -> None:
        body = (
            MultipartBody()
            .add_field("payload_json", '{"content":"hi"}')
            .add_file("files[0]", "a.txt", b"hello", "text/plain")
            .add_file("files[1]", "b.bin", b"\x00")
        )

        data, files = body.to_httpx()

        assert data == {"payload_json": ['{"content":"hi"}']}
        assert files == [
            ("files[0]", ("a.txt", b"hello", "text/plain")),
            ("files[1]", ("b.bin", b"\x00")),
        ]

    def test_repeated_field_names_kept(self) -> None:
        data, files = MultipartBody().add_field("tag", "a").add_field("tag", "b").to_httpx()
        assert data == {"tag": ["a", "b"]}
        assert files == []

    def test_str_file_content_encoded(self) -> None:
        _, files = MultipartBody().add_file("file", "note.txt", "héllo").to_httpx()
        assert files == [("file", ("note.txt", "héllo".encode("utf-8")))]

    def test_bytes_field_without_filename_is_file(self) -> None:
        part = MultipartField(name="blob", value=b"\x01")
        assert part.is_file
        _, files = MultipartBody(parts=[part]).to_httpx()
        assert files == [("blob", ("blob", b"\x01"))]

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            MultipartField(name="a", value="b", unknown="c")


class TestOriginContext:
    def test_capture(self) -> None:
        origin = OriginContext.capture(RestMethod.POST, "/channels/{}/messages")

        assert origin.method == "POST"
        assert origin.endpoint == "/channels/{}/messages"
        assert len(origin.correlation_id) == 32
        assert origin.created_at.tzinfo is not None
        assert "test_models.py" in origin.call_site
        assert "test_capture" in origin.call_site

    def test_str_contains_correlation_id(self) -> None:
        origin = OriginContext.capture("GET", "/users/{}")
        assert origin.correlation_id in str(origin)
        assert str(origin).startswith("GET /users/{}")

    def test_frozen(self) -> None:
        origin = OriginContext.capture("GET", "/users/{}")
        with pytest.raises(ValidationError):
            origin.method = "POST"


class TestClientConfig:
    def test_defaults(self) -> None:
        config = ClientConfig(base_url="https://chat.test/api")
        assert config.token is None
        assert config.timeout == 30.0
        assert config.default_max_retries == 50
        assert config.verify_ssl is True
        assert config.headers == {}

    def test_negative_default_retries_rejected(self) -> None:
        with pytest.raises(ValidationError, match="cannot be less than 0"):
            ClientConfig(base_url="https://chat.test/api", default_max_retries=-1)

    def test_non_positive_timeout_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(base_url="https://chat.test/api", timeout=0)

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(base_url="https://chat.test/api", retries=3)


class TestRuntimeConfig:
    def test_logging_optional(self) -> None:
        config = RuntimeConfig.model_validate({"client": {"base_url": "https://chat.test/api"}})
        assert config.logging is None

    def test_log_level_normalised(self) -> None:
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_unknown_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Unknown log level"):
            LoggingConfig(level="chatty")
