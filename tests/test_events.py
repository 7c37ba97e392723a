"""Tests for the EventBus and structlog configuration."""

from __future__ import annotations

import asyncio
import json
import warnings

import pytest
import structlog

from memoir import logging as memoir_logging
from memoir.events.bus import EventBus, MemoirEvent
from memoir.logging import configure_logging
from memoir.models.config import LoggingConfig


class TestEventBus:
    def test_specific_and_global_handlers(self):
        bus = EventBus()
        specific, everything = [], []
        bus.subscribe(MemoirEvent.CHUNK_CREATED, lambda e, p: specific.append(p["chunk_id"]))
        bus.subscribe_all(lambda e, p: everything.append(e))

        bus.publish(MemoirEvent.CHUNK_CREATED, {"chunk_id": "ch_1"})
        bus.publish(MemoirEvent.SESSION_DELETED, {"session_id": "s"})

        assert specific == ["ch_1"]
        assert everything == [MemoirEvent.CHUNK_CREATED, MemoirEvent.SESSION_DELETED]

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []

        def handler(event, payload):
            seen.append(event)

        bus.subscribe(MemoirEvent.HOOK_FAILED, handler)
        bus.unsubscribe(MemoirEvent.HOOK_FAILED, handler)
        bus.unsubscribe(MemoirEvent.HOOK_FAILED, handler)
        bus.publish(MemoirEvent.HOOK_FAILED, {})
        assert seen == []

    def test_handler_errors_do_not_propagate(self):
        bus = EventBus()
        seen = []

        def broken(event, payload):
            raise ValueError("boom")

        bus.subscribe(MemoirEvent.PART_REJECTED, broken)
        bus.subscribe(MemoirEvent.PART_REJECTED, lambda e, p: seen.append(p))
        bus.publish(MemoirEvent.PART_REJECTED, {"reason": "blank"})
        assert seen == [{"reason": "blank"}]

    async def test_async_handlers_scheduled(self):
        bus = EventBus()
        done = asyncio.Event()

        async def handler(event, payload):
            done.set()

        bus.subscribe(MemoirEvent.COMPACTION_COMPLETED, handler)
        bus.publish(MemoirEvent.COMPACTION_COMPLETED, {})
        await asyncio.wait_for(done.wait(), timeout=1)

    def test_async_handler_without_loop_is_dropped(self):
        bus = EventBus()
        calls = []

        async def handler(event, payload):
            calls.append(event)

        bus.subscribe(MemoirEvent.CHUNK_CREATED, handler)
        bus.publish(MemoirEvent.CHUNK_CREATED, {})
        assert calls == []

    def test_event_values(self):
        assert MemoirEvent.CHUNK_CREATED == "chunk.created"
        assert str(MemoirEvent.HOOK_FAILED) == "hook.failed"


@pytest.fixture
def _reset_structlog():
    yield
    configure_logging(LoggingConfig())
    structlog.reset_defaults()


@pytest.mark.usefixtures("_reset_structlog")
class TestConfigureLogging:
    def test_json_lines_to_file(self, tmp_path):
        log_file = tmp_path / "logs" / "memoir.log"
        configure_logging(LoggingConfig(json_format=True, file=str(log_file)))

        log = structlog.get_logger("memoir.test")
        log.debug("hidden_event")
        log.info("chunk_finalized", session_id="ses_A")

        lines = log_file.read_text().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["event"] == "chunk_finalized"
        assert record["session_id"] == "ses_A"
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_debug_enabled(self, tmp_path):
        log_file = tmp_path / "memoir.log"
        configure_logging(LoggingConfig(debug=True, json_format=True, file=str(log_file)))
        structlog.get_logger("memoir.test").debug("draft_created")
        assert json.loads(log_file.read_text().splitlines()[0])["event"] == "draft_created"

    def test_console_to_stderr(self, capsys):
        configure_logging(LoggingConfig())
        structlog.get_logger("memoir.test").warning("host_transcript_unavailable")
        assert "host_transcript_unavailable" in capsys.readouterr().err

    def test_reconfigure_closes_previous_file(self, tmp_path):
        configure_logging(LoggingConfig(file=str(tmp_path / "first.log")))
        first = memoir_logging._log_file
        configure_logging(LoggingConfig(file=str(tmp_path / "second.log")))
        second = memoir_logging._log_file

        assert first is not None and first.closed
        assert second is not None and not second.closed

        configure_logging(LoggingConfig())
        assert second.closed
        assert memoir_logging._log_file is None

    def test_console_renders_exceptions_without_warning(self, tmp_path):
        log_file = tmp_path / "console.log"
        configure_logging(LoggingConfig(file=str(log_file)))
        try:
            raise RuntimeError("disk on fire")
        except RuntimeError as exc:
            with warnings.catch_warnings():
                warnings.simplefilter("error")
                structlog.get_logger("memoir.test").error("hook_failed", exc_info=exc)

        text = log_file.read_text()
        assert "hook_failed" in text
        assert "disk on fire" in text

    def test_json_includes_exception_text(self, tmp_path):
        log_file = tmp_path / "memoir.log"
        configure_logging(LoggingConfig(json_format=True, file=str(log_file)))
        try:
            raise RuntimeError("disk on fire")
        except RuntimeError as exc:
            structlog.get_logger("memoir.test").error("hook_failed", exc_info=exc)

        record = json.loads(log_file.read_text().splitlines()[0])
        assert "RuntimeError: disk on fire" in record["exception"]
