"""
Unit tests for the Logfire monitoring module.

This test suite covers:
- Environment variable parsing
- Logfire initialization with various configurations
- Custom logging functions (invocations, security events, API requests, errors)
- Error handling and graceful degradation
- Context retrieval
"""

import importlib
import logging
import os
import sys
from unittest.mock import MagicMock, patch

import pytest

import capgate.core.monitoring as monitoring_module

MODULE = "capgate.core.monitoring"


@pytest.fixture
def reload_monitoring():
    """Reload the module under a patched environment and restore it afterwards."""

    def _reload(env: dict, clear: bool = False):
        with patch.dict(os.environ, env, clear=clear):
            return importlib.reload(monitoring_module)

    yield _reload
    importlib.reload(monitoring_module)


@pytest.fixture
def fake_logfire():
    """Install a mock ``logfire`` module for the lazy imports inside the helpers."""
    mock = MagicMock()
    with patch.dict(sys.modules, {"logfire": mock}):
        yield mock


class TestLogfireEnvironmentConfiguration:
    """Test environment variable configuration for Logfire."""

    def test_logfire_disabled_by_default(self, reload_monitoring):
        module = reload_monitoring({}, clear=True)
        assert module.LOGFIRE_ENABLED is False
        assert module.LOGFIRE_PROJECT_NAME == "capgate"
        assert module.LOGFIRE_SERVICE_NAME == "capgate-server"

    @pytest.mark.parametrize("value", ["true", "1", "yes", "TRUE"])
    def test_logfire_enabled_values(self, reload_monitoring, value):
        assert reload_monitoring({"LOGFIRE_ENABLED": value}).LOGFIRE_ENABLED is True

    def test_sample_rates_from_environment(self, reload_monitoring):
        module = reload_monitoring({"LOGFIRE_SAMPLE_RATE": "0.5", "LOGFIRE_TRACE_SAMPLE_RATE": "0.1"})
        assert module.LOGFIRE_SAMPLE_RATE == 0.5
        assert module.LOGFIRE_TRACE_SAMPLE_RATE == 0.1

    def test_feature_flags_default_to_true(self, reload_monitoring):
        module = reload_monitoring({}, clear=True)
        assert module.LOGFIRE_TRACE_HTTPX is True
        assert module.LOGFIRE_TRACE_FASTAPI is True

    def test_feature_flags_can_be_disabled(self, reload_monitoring):
        module = reload_monitoring({"LOGFIRE_TRACE_HTTPX": "false", "LOGFIRE_TRACE_FASTAPI": "0"})
        assert module.LOGFIRE_TRACE_HTTPX is False
        assert module.LOGFIRE_TRACE_FASTAPI is False


class TestInitializeLogfire:
    """Test initialize_logfire."""

    @patch(f"{MODULE}.LOGFIRE_ENABLED", False)
    @patch(f"{MODULE}.logger")
    def test_initialize_logfire_disabled(self, mock_logger, fake_logfire):
        monitoring_module.initialize_logfire()

        fake_logfire.configure.assert_not_called()
        assert "disabled" in mock_logger.info.call_args[0][0]

    @patch(f"{MODULE}.LOGFIRE_ENABLED", True)
    @patch(f"{MODULE}.LOGFIRE_TOKEN", "")
    @patch(f"{MODULE}.logger")
    def test_initialize_logfire_no_token(self, mock_logger, fake_logfire):
        monitoring_module.initialize_logfire()

        fake_logfire.configure.assert_not_called()
        mock_logger.warning.assert_called_once()

    @patch(f"{MODULE}.LOGFIRE_ENABLED", True)
    @patch(f"{MODULE}.LOGFIRE_TOKEN", "test-token")
    @patch(f"{MODULE}.LOGFIRE_SERVICE_NAME", "test-service")
    @patch(f"{MODULE}.LOGFIRE_ENVIRONMENT", "test")
    @patch(f"{MODULE}.LOGFIRE_TRACE_HTTPX", True)
    @patch(f"{MODULE}.LOGFIRE_TRACE_FASTAPI", True)
    @patch(f"{MODULE}.logger")
    def test_initialize_logfire_configures_and_instruments(self, mock_logger, fake_logfire):
        app = MagicMock()

        monitoring_module.initialize_logfire(app)

        kwargs = fake_logfire.configure.call_args.kwargs
        assert kwargs["token"] == "test-token"
        assert kwargs["service_name"] == "test-service"
        assert kwargs["environment"] == "test"
        fake_logfire.instrument_httpx.assert_called_once()
        fake_logfire.instrument_fastapi.assert_called_once_with(app=app)

    @patch(f"{MODULE}.LOGFIRE_ENABLED", True)
    @patch(f"{MODULE}.LOGFIRE_TOKEN", "test-token")
    @patch(f"{MODULE}.LOGFIRE_TRACE_HTTPX", False)
    @patch(f"{MODULE}.LOGFIRE_TRACE_FASTAPI", True)
    @patch(f"{MODULE}.logger")
    def test_initialize_logfire_without_app_skips_fastapi(self, mock_logger, fake_logfire):
        monitoring_module.initialize_logfire()

        fake_logfire.instrument_httpx.assert_not_called()
        fake_logfire.instrument_fastapi.assert_not_called()

    @patch(f"{MODULE}.LOGFIRE_ENABLED", True)
    @patch(f"{MODULE}.LOGFIRE_TOKEN", "test-token")
    @patch(f"{MODULE}.LOGFIRE_TRACE_HTTPX", True)
    @patch(f"{MODULE}.logger")
    def test_instrumentation_failure_is_logged(self, mock_logger, fake_logfire):
        fake_logfire.instrument_httpx.side_effect = RuntimeError("no httpx")

        monitoring_module.initialize_logfire()

        assert any("Failed to instrument HTTPX" in c[0][0] for c in mock_logger.warning.call_args_list)

    @patch(f"{MODULE}.LOGFIRE_ENABLED", True)
    @patch(f"{MODULE}.LOGFIRE_TOKEN", "test-token")
    @patch(f"{MODULE}.logger")
    def test_configure_failure_is_contained(self, mock_logger, fake_logfire):
        fake_logfire.configure.side_effect = ValueError("bad token")

        monitoring_module.initialize_logfire()

        mock_logger.error.assert_called_once()


class TestLogHelpers:
    """Test the custom logging helpers."""

    @patch(f"{MODULE}.LOGFIRE_ENABLED", False)
    def test_helpers_noop_when_disabled(self, fake_logfire):
        monitoring_module.log_invocation("r1", "add", "success", 1.0)
        monitoring_module.log_api_request("GET", "/health", 200, 1.0)
        monitoring_module.log_error("ValueError", "boom")

        fake_logfire.info.assert_not_called()
        fake_logfire.error.assert_not_called()

    @patch(f"{MODULE}.LOGFIRE_ENABLED", True)
    def test_log_invocation(self, fake_logfire):
        monitoring_module.log_invocation("r1", "add", "success", 2.5, cached=True)

        fake_logfire.info.assert_called_once()
        kwargs = fake_logfire.info.call_args.kwargs
        assert kwargs["request_id"] == "r1"
        assert kwargs["capability"] == "add"
        assert kwargs["cached"] is True

    @patch(f"{MODULE}.LOGFIRE_ENABLED", True)
    def test_log_api_request(self, fake_logfire):
        monitoring_module.log_api_request("POST", "/api/v1/capabilities/add/invoke", 200, 3.0)

        kwargs = fake_logfire.info.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["status_code"] == 200

    @patch(f"{MODULE}.LOGFIRE_ENABLED", True)
    def test_log_error_with_context(self, fake_logfire):
        monitoring_module.log_error("ValueError", "boom", context={"error_id": "abc"})

        assert fake_logfire.error.call_args[0][0] == "ValueError: boom"
        assert fake_logfire.error.call_args.kwargs["error_id"] == "abc"

    @patch(f"{MODULE}.LOGFIRE_ENABLED", True)
    def test_logfire_failure_degrades_to_debug(self, fake_logfire):
        fake_logfire.info.side_effect = RuntimeError("exporter down")

        monitoring_module.log_invocation("r1", "add", "success", 1.0)
        monitoring_module.log_api_request("GET", "/health", 200, 1.0)

    @patch(f"{MODULE}.LOGFIRE_ENABLED", False)
    def test_security_event_always_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger=MODULE):
            monitoring_module.log_security_event("command_not_allowed", capability="run_command", detail="rm")

        record = next(r for r in caplog.records if r.name == MODULE)
        assert record.levelno == logging.WARNING
        assert record.security_event is True
        assert record.capability == "run_command"
        assert "command_not_allowed" in record.getMessage()

    @patch(f"{MODULE}.LOGFIRE_ENABLED", True)
    def test_security_event_forwarded_when_enabled(self, fake_logfire):
        monitoring_module.log_security_event("path_escape", capability="read_text_file")

        fake_logfire.warn.assert_called_once()
        assert fake_logfire.warn.call_args.kwargs["event"] == "path_escape"


class TestGetLogfireContext:
    def test_returns_trace_context(self, fake_logfire):
        fake_logfire.current_trace_context.return_value = {"traceparent": "00-abc"}
        assert monitoring_module.get_logfire_context() == {"traceparent": "00-abc"}

    def test_returns_none_on_failure(self, fake_logfire):
        fake_logfire.current_trace_context.side_effect = RuntimeError("no context")
        assert monitoring_module.get_logfire_context() is None
