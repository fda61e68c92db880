"""Unit tests for settings validation and the error taxonomy."""
import pytest
from pydantic import ValidationError
from app.config import DEFAULT_MAX_FILE_BYTES, format_database_id
from app.errors import (
    ConfigurationError,
    FileDownloadError,
    SchemaUnavailableError,
    classify_notion_failure,
)


class TestSettings:
    @pytest.mark.parametrize("raw", ["0", "-5", "abc", "inf", "nan", None])
    def test_invalid_max_file_bytes_falls_back_to_default(self, make_settings, raw):
        assert make_settings(TELEGRAM_NOTION_MAX_FILE_BYTES=raw).TELEGRAM_NOTION_MAX_FILE_BYTES == DEFAULT_MAX_FILE_BYTES

    def test_max_file_bytes_is_floored(self, make_settings):
        assert make_settings(TELEGRAM_NOTION_MAX_FILE_BYTES="1024.9").TELEGRAM_NOTION_MAX_FILE_BYTES == 1024

    @pytest.mark.parametrize("raw,expected", [("1", True), ("TRUE", True), ("yes", True), ("on", True),
                                              ("0", False), ("off", False), ("", False)])
    def test_secret_enforcement_flag(self, make_settings, raw, expected):
        assert make_settings(TELEGRAM_WEBHOOK_REQUIRE_SECRET_TOKEN=raw).TELEGRAM_WEBHOOK_REQUIRE_SECRET_TOKEN is expected

    def test_missing_tokens(self, make_settings):
        config = make_settings(TELEGRAM_BOT_TOKEN="", NOTION_API_TOKEN=" ")
        with pytest.raises(ConfigurationError, match="TELEGRAM_BOT_TOKEN, NOTION_API_TOKEN"):
            config.require_tokens()

    def test_webhook_secret_not_enforced(self, make_settings):
        assert make_settings(TELEGRAM_WEBHOOK_SECRET_TOKEN="s3").require_webhook_secret() is None

    def test_webhook_secret_enforced(self, make_settings):
        config = make_settings(TELEGRAM_WEBHOOK_REQUIRE_SECRET_TOKEN="true", TELEGRAM_WEBHOOK_SECRET_TOKEN="s3")
        assert config.require_webhook_secret() == "s3"

    def test_webhook_secret_enforced_without_secret(self, make_settings):
        config = make_settings(TELEGRAM_WEBHOOK_REQUIRE_SECRET_TOKEN="true")
        with pytest.raises(ConfigurationError, match="Server misconfigured"):
            config.require_webhook_secret()

    def test_invalid_webhook_path(self, make_settings):
        with pytest.raises(ValidationError):
            make_settings(WEBHOOK_PATH="api/telegram")


class TestFormatDatabaseId:
    def test_bare_hex_is_hyphenated(self):
        assert format_database_id("312009f00c208036be25c17b44b2c667") == "312009f0-0c20-8036-be25-c17b44b2c667"

    def test_already_hyphenated(self):
        value = "312009f0-0c20-8036-be25-c17b44b2c667"
        assert format_database_id(value) == value

    def test_other_values_unchanged(self):
        assert format_database_id("short-id") == "short-id"


class TestClassifyNotionFailure:
    def test_code_table(self):
        error = Exception("Could not find database")
        error.code = "object_not_found"
        assert classify_notion_failure(error) == "object_not_found"

    def test_restricted_resource_maps_to_unauthorized(self):
        error = Exception("Forbidden")
        error.code = "restricted_resource"
        assert classify_notion_failure(error) == "unauthorized"

    def test_unknown_code(self):
        error = Exception("Teapot")
        error.code = "something_new"
        assert classify_notion_failure(error) == "api_response_error"

    def test_schema_unavailable(self):
        assert classify_notion_failure(SchemaUnavailableError("Notion data source returned no properties")) == (
            "schema_unavailable"
        )

    def test_unknown(self):
        assert classify_notion_failure(RuntimeError("socket closed")) == "unknown"


def test_file_download_error_message():
    error = FileDownloadError(503)
    assert str(error) == "Telegram file download failed: 503"
    assert error.http_status == 503
