"""
Unit tests for the error taxonomy and error handling helpers.
"""

import logging

import pytest

from trimmer.validation import (
    ConfigurationError,
    ErrorSeverity,
    LaunchFailure,
    OperationCancelledError,
    ParseFailure,
    ProcessError,
    ProcessFailure,
    TrimmerError,
    ValidationError,
    WaitTimeoutError,
    handle_cli_error,
    handle_error,
)


@pytest.mark.unit
class TestErrorTaxonomy:
    """Test cases for the exception hierarchy."""

    def test_source_is_prefixed(self):
        error = ConfigurationError("Upload URL not set", source="UploadDistro")
        assert str(error) == "UploadDistro: Upload URL not set"
        assert error.message == "Upload URL not set"
        assert error.source == "UploadDistro"

    def test_without_source(self):
        assert str(TrimmerError("plain")) == "plain"

    def test_hierarchy(self):
        assert issubclass(ValidationError, ConfigurationError)
        assert issubclass(LaunchFailure, ProcessError)
        assert issubclass(ParseFailure, ProcessFailure)
        assert issubclass(ProcessFailure, TrimmerError)
        assert issubclass(OperationCancelledError, TrimmerError)
        assert not issubclass(OperationCancelledError, ProcessError)

    def test_process_failure_keeps_output(self):
        error = ProcessFailure("7z failed", exit_code=2, stdout="out", stderr="err", source="ZipDistro")
        assert error.exit_code == 2
        assert error.stdout == "out"
        assert error.stderr == "err"

    def test_wait_timeout_keeps_duration(self):
        error = WaitTimeoutError("took too long", waited=12.5)
        assert error.waited == 12.5

    def test_cancelled_default_message(self):
        assert str(OperationCancelledError(source="Steam")) == "Steam: Operation was cancelled"


@pytest.mark.unit
class TestHandleError:
    """Test cases for the error handling helpers."""

    def test_reraise(self):
        with pytest.raises(ValueError):
            handle_error(ValueError("boom"), "testing")

    def test_logs_with_severity(self, caplog):
        logger = logging.getLogger("test.handle_error")
        with caplog.at_level(logging.WARNING, logger="test.handle_error"):
            handle_error(ValueError("boom"), "testing", severity=ErrorSeverity.WARNING,
                         reraise=False, logger=logger)

        assert caplog.records[-1].levelno == logging.WARNING
        assert "Error in testing: boom" in caplog.records[-1].getMessage()

    def test_string_severity(self, caplog):
        logger = logging.getLogger("test.handle_error")
        with caplog.at_level(logging.ERROR, logger="test.handle_error"):
            handle_error(ValueError("boom"), "testing", severity="error", reraise=False, logger=logger)
        assert caplog.records[-1].levelno == logging.ERROR

    def test_cli_error_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            handle_cli_error(ValueError("bad"), "parsing", exit_code=3)
        assert exc_info.value.code == 3
