"""
Default handler wiring.
"""
from wcs_toolbox.core.config import AppConfig, ConfigManager
from wcs_toolbox.core.tasks import HandlerRegistry, TaskQueue
from wcs_toolbox.handlers import (
    ArchiveConvertHandler,
    GallerySearchHandler,
    ShortcutHandler,
    build_default_handlers,
    register_default_handlers,
)

EXPECTED_TYPES = [
    "convert-7z-to-zip",
    "convert-txt-to-epub",
    "create-shortcuts",
    "gallery-crawl",
    "gallery-search",
    "pack-images",
]


class TestDefaultHandlers:

    def test_register_on_registry(self):
        registry = HandlerRegistry()
        register_default_handlers(registry)
        assert registry.types() == EXPECTED_TYPES

    def test_register_on_queue(self):
        queue = TaskQueue()
        handlers = register_default_handlers(queue)
        assert queue.registry.types() == EXPECTED_TYPES
        assert isinstance(handlers["create-shortcuts"], ShortcutHandler)

    def test_handlers_follow_config(self, tmp_path):
        config = ConfigManager(str(tmp_path / "config.json"))
        config.update("shortcuts", "batch_size", 3)
        config.update("archives", "keep_original", False)

        handlers = build_default_handlers(config.data)

        assert handlers["create-shortcuts"].batch_size == 3
        archive = handlers["convert-7z-to-zip"]
        assert isinstance(archive, ArchiveConvertHandler)
        assert archive.keep_original is False

    def test_crawler_settings_are_live(self, tmp_path):
        config = ConfigManager(str(tmp_path / "config.json"))
        handlers = register_default_handlers(HandlerRegistry(), config)

        config.update("crawler", "base_url", "https://site.test")

        search = handlers["gallery-search"]
        assert isinstance(search, GallerySearchHandler)
        assert search.settings.base_url == "https://site.test"

    def test_defaults_without_config(self):
        handlers = build_default_handlers()
        assert handlers["convert-txt-to-epub"].default_author == AppConfig().epub.default_author
