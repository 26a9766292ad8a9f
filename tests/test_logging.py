"""
Unit tests for structured logging helpers.
"""

import structlog

from callkit.shared.logging import (
    add_correlation_context,
    add_service_context,
    bind_call_context,
    call_id_var,
    clear_context,
    configure_logging,
    get_logger,
    reset_call_context,
    set_call_context,
    set_call_id,
)


class TestLogging:
    """Test cases for logging configuration and processors."""

    def test_configure_logging(self):
        """configure_logging installs the structlog pipeline."""
        try:
            configure_logging("callkit", "debug")
            assert structlog.is_configured()
            assert get_logger("callkit.test") is not None
        finally:
            structlog.reset_defaults()

    def test_correlation_context(self):
        """Call id and cache key are attached to log events."""
        call_id = set_call_id()
        set_call_context("GET:/hotels")
        try:
            event = add_correlation_context(None, "info", {"event": "Cache hit"})
            assert event["call_id"] == call_id
            assert event["key"] == "GET:/hotels"

            explicit = add_correlation_context(None, "info", {"event": "x", "key": "other"})
            assert explicit["key"] == "other"
        finally:
            clear_context()

        assert call_id_var.get() is None

    def test_explicit_call_id(self):
        """A given call id is used as is."""
        try:
            assert set_call_id("abc123") == "abc123"
        finally:
            clear_context()

    def test_service_context(self):
        """The service is taken from the dotted logger name."""
        event = add_service_context(None, "info", {"logger": "callkit.coordinator"})
        assert event["service"] == "callkit"

    def test_bind_and_reset_restore_outer_context(self):
        """reset_call_context restores whatever was bound before."""
        set_call_id("outer")
        try:
            call_id, tokens = bind_call_context("GET:/hotels")
            assert call_id_var.get() == call_id != "outer"

            reset_call_context(tokens)
            assert call_id_var.get() == "outer"
        finally:
            clear_context()
