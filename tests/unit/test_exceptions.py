"""
Tests for the exception hierarchy and retry classification.
"""

import pytest

from hemeroteca.utils.exceptions import (
    ConfigurationError,
    DatabaseError,
    DuplicateArticleError,
    ErrorCode,
    ExtractionError,
    FetchFailed,
    FetchTimeout,
    HemerotecaError,
    PersistError,
    handle_exception,
    is_retryable_error,
)


class TestHemerotecaError:

    def test_str_includes_error_code(self):
        error = HemerotecaError("boom", error_code=ErrorCode.CONFIG_INVALID)
        assert str(error) == "[C001] boom"
        assert str(HemerotecaError("plain")) == "plain"

    def test_to_dict(self):
        error = FetchTimeout("Request timeout after 5s", url="https://a.example.com/", timeout=5)
        data = error.to_dict()

        assert data["error_type"] == "FetchTimeout"
        assert data["error_code"] == ErrorCode.FEED_FETCH_TIMEOUT.value
        assert data["context"] == {
            "timeout_seconds": 5,
            "url": "https://a.example.com/",
            "cause": "timeout",
        }
        assert data["recoverable"] is True

    def test_configuration_error_context(self):
        error = ConfigurationError("missing", config_key="ingestion.feeds_file",
                                   error_code=ErrorCode.CONFIG_MISSING)
        assert error.context["config_key"] == "ingestion.feeds_file"
        assert error.error_code == ErrorCode.CONFIG_MISSING


class TestErrorTaxonomy:

    def test_persist_errors_are_database_errors(self):
        assert issubclass(PersistError, DatabaseError)
        assert issubclass(DuplicateArticleError, PersistError)

    def test_persist_error_is_fatal(self):
        error = PersistError("disk full", canonical_url="https://a.example.com/")
        assert not error.recoverable
        assert error.error_code == ErrorCode.DATABASE_TRANSACTION

    def test_duplicate_is_recoverable(self):
        error = DuplicateArticleError("exists", canonical_url="https://a.example.com/")
        assert error.recoverable
        assert error.error_code == ErrorCode.DATABASE_CONSTRAINT
        assert error.canonical_url == "https://a.example.com/"

    def test_fetch_failed_status_code(self):
        assert FetchFailed("HTTP 503", status=503).error_code == ErrorCode.FEED_HTTP_STATUS
        assert FetchFailed("reset", cause="ClientOSError").error_code == ErrorCode.FEED_NETWORK_ERROR

    def test_extraction_error_keeps_reason(self):
        error = ExtractionError("empty payload", url="https://a.example.com/")
        assert error.reason == "empty payload"
        assert error.url == "https://a.example.com/"


class TestHandleException:

    @pytest.fixture
    def logger(self):
        import logging
        return logging.getLogger("hemeroteca.tests")

    def test_hemeroteca_errors_pass_through(self, logger):
        error = PersistError("disk full")
        assert handle_exception(error, logger, "persist") is error

    def test_missing_file_becomes_configuration_error(self, logger):
        error = handle_exception(FileNotFoundError("feeds.txt"), logger, "load feeds")
        assert isinstance(error, ConfigurationError)
        assert error.error_code == ErrorCode.CONFIG_MISSING
        assert error.context["operation"] == "load feeds"

    def test_unexpected_error_wrapped(self, logger):
        error = handle_exception(RuntimeError("boom"), logger, "cli")
        assert type(error) is HemerotecaError
        assert error.user_message == "An unexpected error occurred"
        assert error.context["original_exception_type"] == "RuntimeError"


class TestIsRetryable:

    @pytest.mark.parametrize("error", [
        FetchTimeout("timeout"),
        FetchFailed("HTTP 503", status=503, recoverable=True),
        FetchFailed("connection reset"),
    ])
    def test_transient_fetch_errors_are_retryable(self, error):
        assert is_retryable_error(error)

    @pytest.mark.parametrize("error", [
        FetchFailed("HTTP 404", status=404, recoverable=False),
        ExtractionError("no text"),
        DuplicateArticleError("exists"),
        PersistError("disk full"),
        ValueError("plain"),
    ])
    def test_other_errors_are_not_retryable(self, error):
        assert not is_retryable_error(error)
