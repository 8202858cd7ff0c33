"""
Bundled task handlers and their registration.
"""
from typing import Dict, Optional, Union

from loguru import logger

from wcs_toolbox.core.config import AppConfig, ConfigManager
from wcs_toolbox.core.tasks import HandlerRegistry, TaskQueue

from . import archives, epub, gallery, images, shortcuts
from .archives import ArchiveConvertHandler
from .epub import EpubConvertHandler, preview_chapters
from .gallery import GalleryCrawlHandler, GalleryHandler, GallerySearchHandler
from .images import ImagePackHandler
from .scanner import scan_7z_files, scan_image_folders, scan_txt_files, scan_videos
from .shortcuts import ShortcutHandler


def build_default_handlers(config: Optional[AppConfig] = None) -> Dict[str, object]:
    """Handler instances keyed by task type, configured from the given settings."""
    config = config or AppConfig()
    return {
        shortcuts.TASK_TYPE: ShortcutHandler(batch_size=config.shortcuts.batch_size),
        archives.TASK_TYPE: ArchiveConvertHandler(
            compression_level=config.archives.compression_level,
            keep_original=config.archives.keep_original,
        ),
        images.TASK_TYPE: ImagePackHandler(compression_level=config.archives.compression_level),
        epub.TASK_TYPE: EpubConvertHandler(
            default_author=config.epub.default_author,
            chapter_pattern=config.epub.chapter_pattern,
            language=config.epub.language,
        ),
        gallery.SEARCH_TASK_TYPE: GallerySearchHandler(config.crawler),
        gallery.CRAWL_TASK_TYPE: GalleryCrawlHandler(config.crawler),
    }


def register_default_handlers(target: Union[TaskQueue, HandlerRegistry],
                              config: Union[AppConfig, ConfigManager, None] = None,
                              replace: bool = False) -> Dict[str, object]:
    """Register every bundled handler on a TaskQueue or HandlerRegistry."""
    if isinstance(config, ConfigManager):
        config = config.data
    handlers = build_default_handlers(config)
    register = target.register_handler if isinstance(target, TaskQueue) else target.register
    for task_type, handler in handlers.items():
        register(task_type, handler, replace=replace)
    logger.info(f"Registered {len(handlers)} default handlers: {', '.join(sorted(handlers))}")
    return handlers


__all__ = [
    "ArchiveConvertHandler",
    "EpubConvertHandler",
    "GalleryCrawlHandler",
    "GalleryHandler",
    "GallerySearchHandler",
    "ImagePackHandler",
    "ShortcutHandler",
    "build_default_handlers",
    "register_default_handlers",
    "preview_chapters",
    "scan_7z_files",
    "scan_image_folders",
    "scan_txt_files",
    "scan_videos",
]
