"""
ServiceLocator, BaseSystem lifecycle and ApplicationBuilder tests.
"""
import sys
from unittest.mock import MagicMock

import pytest
from loguru import logger

from wcs_toolbox.core import ApplicationBuilder, BaseSystem, ConfigManager, EventBus, ServiceLocator, TaskQueue
from wcs_toolbox.core.config import GeneralSettings
from wcs_toolbox.core.logging import setup_logging
from wcs_toolbox.core.tasks import TaskStatus


class RecordingSystem(BaseSystem):
    events = []

    async def initialize(self):
        RecordingSystem.events.append(("start", type(self).__name__))
        await super().initialize()

    async def shutdown(self):
        RecordingSystem.events.append(("stop", type(self).__name__))
        await super().shutdown()


class OtherSystem(RecordingSystem):
    pass


class FailingShutdownSystem(RecordingSystem):

    async def shutdown(self):
        raise RuntimeError("cannot stop")


@pytest.fixture
def config(tmp_path):
    return ConfigManager(str(tmp_path / "config.json"))


@pytest.fixture(autouse=True)
def clear_events():
    RecordingSystem.events = []


class TestServiceLocator:

    def test_singleton(self):
        assert ServiceLocator() is ServiceLocator()

    def test_reset_creates_new_instance(self):
        first = ServiceLocator()
        ServiceLocator.reset()
        assert ServiceLocator() is not first

    def test_register_and_get(self, config):
        locator = ServiceLocator()
        locator.init(config=config)
        system = locator.register_system(RecordingSystem)

        assert locator.get_system(RecordingSystem) is system
        assert system.locator is locator
        assert system.config is config
        assert locator.register_system(RecordingSystem) is system
        assert locator.has_system(RecordingSystem)

    def test_get_unregistered(self):
        with pytest.raises(KeyError, match="System not registered"):
            ServiceLocator().get_system(OtherSystem)

    @pytest.mark.asyncio
    async def test_start_in_order_stop_in_reverse(self, config):
        locator = ServiceLocator()
        locator.init(config=config)
        locator.register_system(RecordingSystem)
        locator.register_system(OtherSystem)

        await locator.start_all()
        await locator.stop_all()

        assert RecordingSystem.events == [
            ("start", "RecordingSystem"),
            ("start", "OtherSystem"),
            ("stop", "OtherSystem"),
            ("stop", "RecordingSystem"),
        ]

    @pytest.mark.asyncio
    async def test_stop_all_continues_after_error(self, config):
        locator = ServiceLocator()
        locator.init(config=config)
        locator.register_system(RecordingSystem)
        locator.register_system(FailingShutdownSystem)

        await locator.start_all()
        await locator.stop_all()

        assert ("stop", "RecordingSystem") in RecordingSystem.events


class TestBaseSystemContextManager:

    @pytest.mark.asyncio
    async def test_async_with(self):
        async with RecordingSystem(MagicMock(), MagicMock()) as system:
            assert system.is_ready
        assert not system.is_ready


class TestApplicationBuilder:

    @pytest.mark.asyncio
    async def test_build_wires_queue_and_bus(self, config):
        locator = await ApplicationBuilder("Test", config=config).build()

        queue = locator.get_system(TaskQueue)
        bus = locator.get_system(EventBus)
        assert queue.is_ready and bus.is_ready
        assert queue.max_concurrent == 2
        assert len(queue.registry) == 0

        await locator.stop_all()

    @pytest.mark.asyncio
    async def test_default_handlers(self, config):
        locator = await ApplicationBuilder("Test", config=config).with_default_handlers().build()
        queue = locator.get_system(TaskQueue)

        assert queue.registry.types() == [
            "convert-7z-to-zip",
            "convert-txt-to-epub",
            "create-shortcuts",
            "gallery-crawl",
            "gallery-search",
            "pack-images",
        ]
        await locator.stop_all()

    @pytest.mark.asyncio
    async def test_custom_system_and_config(self, config):
        config.update("tasks", "max_concurrent", 3)
        locator = await ApplicationBuilder("Test", config=config).add_system(RecordingSystem).build()

        assert locator.get_system(TaskQueue).max_concurrent == 3
        assert locator.get_system(RecordingSystem).is_ready
        await locator.stop_all()

    @pytest.mark.asyncio
    async def test_queue_publishes_on_bus(self, config):
        locator = await ApplicationBuilder("Test", config=config).build()
        queue = locator.get_system(TaskQueue)
        bus = locator.get_system(EventBus)
        received = []
        bus.subscribe("task.changed", received.append)

        queue.submit("unregistered")

        assert [t.status for t in received] == [TaskStatus.FAILED]
        await locator.stop_all()

    @pytest.mark.asyncio
    async def test_config_changes_reach_bus(self, config):
        locator = await ApplicationBuilder("Test", config=config).build()
        received = []
        locator.get_system(EventBus).subscribe("config.changed", received.append)

        config.update("tasks", "max_concurrent", 4)

        assert received == [{"section": "tasks", "key": "max_concurrent", "value": 4}]
        # concurrency is fixed for the lifetime of the queue
        assert locator.get_system(TaskQueue).max_concurrent == 2
        await locator.stop_all()


class TestLogging:

    def test_setup_logging_creates_log_dir(self, tmp_path):
        log_dir = tmp_path / "logs"
        setup_logging(GeneralSettings(debug_mode=True, log_dir=str(log_dir)))
        try:
            logger.debug("hello")
            assert log_dir.is_dir()
            assert any(p.name.startswith("toolbox_") for p in log_dir.iterdir())
        finally:
            logger.remove()
            logger.add(sys.stderr)

    def test_console_level_from_settings(self, tmp_path, monkeypatch):
        fake = MagicMock()
        monkeypatch.setattr("wcs_toolbox.core.logging.logger", fake)
        settings = GeneralSettings(log_level="warning", log_dir=str(tmp_path / "logs"),
                                   log_rotation="1 MB", log_retention="3 days")

        setup_logging(settings)

        console, logfile = fake.add.call_args_list
        assert console.args[0] is sys.stderr
        assert console.kwargs["level"] == "WARNING"
        assert logfile.kwargs["rotation"] == "1 MB"
        assert logfile.kwargs["retention"] == "3 days"
        assert logfile.kwargs["level"] == "DEBUG"

    def test_debug_mode_overrides_level(self, monkeypatch):
        fake = MagicMock()
        monkeypatch.setattr("wcs_toolbox.core.logging.logger", fake)

        setup_logging(GeneralSettings(debug_mode=True, log_level="ERROR", log_to_file=False))

        assert [c.kwargs["level"] for c in fake.add.call_args_list] == ["DEBUG"]

    def test_file_sink_disabled(self, tmp_path):
        log_dir = tmp_path / "logs"
        setup_logging(GeneralSettings(log_dir=str(log_dir), log_to_file=False))
        try:
            logger.info("console only")
            assert not log_dir.exists()
        finally:
            logger.remove()
            logger.add(sys.stderr)

    @pytest.mark.asyncio
    async def test_builder_applies_general_settings(self, config, monkeypatch):
        seen = []
        monkeypatch.setattr("wcs_toolbox.core.logging.setup_logging", seen.append)
        config.update("general", "log_level", "ERROR")

        locator = await ApplicationBuilder("Test", config=config).with_logging().build()

        assert seen == [config.data.general]
        assert seen[0].log_level == "ERROR"
        await locator.stop_all()
