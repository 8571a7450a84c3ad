"""Tests for the bus-driven event logger."""

import logging

import pytest

from localchat.protocol.bus import EventBus
from localchat.protocol.events import EventTypes
from localchat.protocol.objects import Cancelled, Complete, Delta, Error
from localchat.utils.logger import EventLogger, setup_logging


async def _logged_bus():
    bus = EventBus()
    await EventLogger(bus).start()
    return bus


async def _emit(bus, event):
    await bus.emit(event.event_type, event)


@pytest.mark.asyncio
async def test_interleaved_instances_log_one_line_each(caplog):
    bus = await _logged_bus()
    caplog.set_level(logging.INFO, logger="LocalChat")

    await _emit(bus, Delta(instance_id="a", text="Hel"))
    await _emit(bus, Delta(instance_id="b", text="Bon"))
    await _emit(bus, Delta(instance_id="a", text="lo"))
    await _emit(bus, Delta(instance_id="b", text="jour"))
    await _emit(bus, Complete(instance_id="b", final_text="Bonjour"))
    await _emit(bus, Complete(instance_id="a", final_text="Hello"))

    messages = [r.getMessage() for r in caplog.records if r.name == "LocalChat"]
    assert messages == ["🤖 MODEL [b]: Bonjour", "🤖 MODEL [a]: Hello"]


@pytest.mark.asyncio
async def test_cancel_and_error_drop_buffers(caplog):
    bus = await _logged_bus()
    caplog.set_level(logging.INFO, logger="LocalChat")

    await _emit(bus, Delta(instance_id="a", text="part"))
    await _emit(bus, Cancelled(instance_id="a"))
    await _emit(bus, Delta(instance_id="b", text="oops"))
    await _emit(bus, Error(instance_id="b", message="boom"))
    await _emit(bus, Complete(instance_id="a", final_text="fresh"))

    messages = [r.getMessage() for r in caplog.records if r.name == "LocalChat"]
    assert "⏹️  CANCELLED [a] after 4 chars" in messages
    assert "🚨 GENERATION FAILED [b]: boom" in messages
    assert messages[-1] == "🤖 MODEL [a]: fresh"


@pytest.mark.asyncio
async def test_warnings_include_details(caplog):
    bus = await _logged_bus()
    caplog.set_level(logging.WARNING, logger="LocalChat")

    await bus.emit(
        EventTypes.WARNING,
        {"message": "Reply not saved", "details": "disk full", "instance_id": "a"},
    )

    assert caplog.records[-1].levelno == logging.WARNING
    assert caplog.records[-1].getMessage() == "⚠️  Reply not saved: disk full"


def test_setup_logging_writes_to_log_file(settings, tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    settings.log_file = tmp_path / "logs" / "localchat.log"
    try:
        setup_logging(settings)
        logging.getLogger("LocalChat").info("hello file")
        for handler in root.handlers:
            handler.flush()

        assert root.level == logging.INFO
        assert "hello file" in settings.log_file.read_text(encoding="utf-8")
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            if handler not in saved_handlers:
                handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)


@pytest.mark.asyncio
async def test_info_events_are_logged(caplog):
    bus = await _logged_bus()
    caplog.set_level(logging.INFO, logger="LocalChat")

    await bus.emit(EventTypes.INFO, {"message": "Generation started", "instance_id": "a"})

    assert caplog.records[-1].getMessage() == "ℹ️  Generation started"
