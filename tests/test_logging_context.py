"""Tests for request-scoped logging."""

import io
import logging

import pytest

from booking_engine.logging_context import (
    HANDLER_NAME,
    NO_REQUEST,
    configure_logging,
    current_request_id,
    request_scope,
)


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


class TestRequestScope:
    def test_fresh_id_outside_any_scope(self):
        with request_scope() as request_id:
            assert request_id.startswith("REQ-")
            assert current_request_id() == request_id
        assert current_request_id() == NO_REQUEST

    def test_nested_scope_inherits(self):
        with request_scope("REQ-outer"):
            with request_scope() as inner:
                assert inner == "REQ-outer"
            assert current_request_id() == "REQ-outer"

    def test_explicit_id_overrides_outer(self):
        with request_scope("REQ-outer"):
            with request_scope("REQ-inner"):
                assert current_request_id() == "REQ-inner"
            assert current_request_id() == "REQ-outer"

    def test_restored_when_block_raises(self):
        with pytest.raises(RuntimeError):
            with request_scope("REQ-failing"):
                raise RuntimeError("boom")
        assert current_request_id() == NO_REQUEST


class TestConfigureLogging:
    def test_format_carries_service_and_request(self, root_logger):
        stream = io.StringIO()
        configure_logging("INFO", service="front-desk", stream=stream)
        with request_scope("REQ-abc123"):
            logging.getLogger("booking_engine.test").info("Booking created")
        line = stream.getvalue()
        assert "front-desk [booking_engine.test] [REQ-abc123] INFO: Booking created" in line

    def test_reconfigure_replaces_handler(self, root_logger):
        configure_logging("INFO", stream=io.StringIO())
        configure_logging("DEBUG", stream=io.StringIO())
        named = [h for h in root_logger.handlers if h.get_name() == HANDLER_NAME]
        assert len(named) == 1
        assert root_logger.level == logging.DEBUG
