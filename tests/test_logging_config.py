import logging

import pytest
import structlog

from sessionvault.logging_config import principal_log_context, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def test_setup_logging_installs_single_handler(restore_root_logger):
    setup_logging("WARNING")

    assert len(restore_root_logger.handlers) == 1
    assert restore_root_logger.level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING


def test_json_output_carries_bound_principal(restore_root_logger, capsys):
    setup_logging("INFO")
    with principal_log_context("user-1"):
        logging.getLogger("sessionvault.test").info("Sessions revoked")

    out = capsys.readouterr().out
    assert '"event": "Sessions revoked"' in out
    assert '"principal_id": "user-1"' in out


def test_principal_context_keeps_caller_keys(restore_root_logger):
    structlog.contextvars.bind_contextvars(request_id="req-abc")

    with principal_log_context("user-1"):
        assert structlog.contextvars.get_contextvars() == {
            "request_id": "req-abc",
            "principal_id": "user-1",
        }

    assert structlog.contextvars.get_contextvars() == {"request_id": "req-abc"}


def test_principal_context_without_principal_binds_nothing(restore_root_logger):
    with principal_log_context(None):
        assert "principal_id" not in structlog.contextvars.get_contextvars()
