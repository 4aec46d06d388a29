"""
Unit tests for gigcrm/logging_config.py.

Tests configure_logging (idempotency, dir creation, level, handler type)
and log_call (entry/exit/failure logging, return value pass-through, re-raise).
"""

import logging
import logging.handlers
import os
from unittest.mock import MagicMock, patch

import pytest

from gigcrm.errors import ApiError
from gigcrm.logging_config import configure_logging, log_call


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clear_gigcrm_logger():
    """Close and remove all handlers from the gigcrm logger."""
    logger = logging.getLogger("gigcrm")
    for h in logger.handlers[:]:
        h.close()
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)


def _log_paths(log_dir):
    return (
        patch("gigcrm.logging_config._LOG_DIR", log_dir),
        patch("gigcrm.logging_config._LOG_FILE", log_dir / "gigcrm.log"),
    )


@pytest.fixture
def mock_logger():
    logger = MagicMock()
    with patch("gigcrm.logging_config.logging") as mock_logging:
        mock_logging.getLogger.return_value = logger
        yield logger


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------

class TestConfigureLogging:

    def setup_method(self):
        _clear_gigcrm_logger()

    def teardown_method(self):
        _clear_gigcrm_logger()

    def test_returns_gigcrm_logger(self, tmp_path):
        dir_patch, file_patch = _log_paths(tmp_path)
        with dir_patch, file_patch:
            result = configure_logging()
        assert isinstance(result, logging.Logger)
        assert result.name == "gigcrm"

    def test_creates_log_dir_if_missing(self, tmp_path):
        log_dir = tmp_path / "logs"
        dir_patch, file_patch = _log_paths(log_dir)
        with dir_patch, file_patch:
            configure_logging()
        assert log_dir.exists()

    def test_adds_single_rotating_handler(self, tmp_path):
        dir_patch, file_patch = _log_paths(tmp_path)
        with dir_patch, file_patch:
            configure_logging()
            configure_logging()
        handlers = logging.getLogger("gigcrm").handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.handlers.RotatingFileHandler)

    def test_default_level_is_info(self, tmp_path):
        env = {k: v for k, v in os.environ.items() if k != "LOG_LEVEL"}
        dir_patch, file_patch = _log_paths(tmp_path)
        with patch.dict(os.environ, env, clear=True), dir_patch, file_patch:
            configure_logging()
        assert logging.getLogger("gigcrm").level == logging.INFO

    @pytest.mark.parametrize("name, level", [
        ("DEBUG", logging.DEBUG),
        ("warning", logging.WARNING),
        ("BOGUS", logging.INFO),
    ])
    def test_log_level_env(self, tmp_path, name, level):
        dir_patch, file_patch = _log_paths(tmp_path)
        with patch.dict(os.environ, {"LOG_LEVEL": name}), dir_patch, file_patch:
            configure_logging()
        assert logging.getLogger("gigcrm").level == level

    def test_engine_module_logs_reach_gigcrm_file(self, tmp_path):
        dir_patch, file_patch = _log_paths(tmp_path)
        with patch.dict(os.environ, {"LOG_LEVEL": "INFO"}), dir_patch, file_patch:
            root = configure_logging()
        logging.getLogger("gigcrm.engine.contracts").info("Sent contract #12")
        for h in root.handlers:
            h.flush()
        text = (tmp_path / "gigcrm.log").read_text(encoding="utf-8")
        assert "| INFO     | Sent contract #12" in text


# ---------------------------------------------------------------------------
# log_call decorator
# ---------------------------------------------------------------------------

class TestLogCall:

    def test_passes_return_value_through(self):
        @log_call
        def total_fee(a, b):
            return a + b

        assert total_fee(150, 200) == 350

    def test_preserves_function_name(self):
        @log_call
        def contracts_send():
            pass

        assert contracts_send.__name__ == "contracts_send"

    def test_logs_call_with_args(self, mock_logger):
        @log_call
        def contracts_send(contract_id, planner_id=None):
            pass

        contracts_send(12, planner_id=3)

        msg = mock_logger.debug.call_args[0][0]
        assert msg.startswith("CALL contracts_send")
        assert "12" in msg
        assert "planner_id=3" in msg

    def test_no_args_placeholder(self, mock_logger):
        @log_call
        def contracts_list():
            pass

        contracts_list()

        msg = mock_logger.debug.call_args[0][0]
        assert "args=(—)" in msg

    def test_logs_ok_with_timing(self, mock_logger):
        @log_call
        def contracts_list():
            pass

        contracts_list()

        mock_logger.info.assert_called_once()
        msg = mock_logger.info.call_args[0][0]
        assert "OK" in msg
        assert "contracts_list" in msg
        assert msg.endswith("ms")

    def test_logs_fail_and_reraises(self, mock_logger):
        @log_call
        def contracts_send():
            raise ApiError(404, "not found")

        with pytest.raises(ApiError, match="404: not found"):
            contracts_send()

        mock_logger.error.assert_called_once()
        msg = mock_logger.error.call_args[0][0]
        assert "FAIL contracts_send" in msg
        assert "ApiError: 404: not found" in msg
        mock_logger.info.assert_not_called()
