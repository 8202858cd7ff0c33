from typing import Any
import json
import os
from pydantic import BaseModel, ConfigDict, Field
from loguru import logger
from .events import Signal

DEFAULT_CHAPTER_PATTERN = r"^\s*第.+[章节].*"


class _Section(BaseModel):
    model_config = ConfigDict(validate_assignment=True)


# --- Generic Settings Models ---
class GeneralSettings(_Section):
    debug_mode: bool = False  # forces DEBUG on the console sink
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True
    log_rotation: str = "10 MB"
    log_retention: str = "1 week"


class TaskQueueSettings(_Section):
    max_concurrent: int = Field(default=2, ge=1)  # process-wide running task limit


# --- Handler Settings ---
class ShortcutSettings(_Section):
    batch_size: int = Field(default=10, ge=1)


class ArchiveSettings(_Section):
    compression_level: int = Field(default=1, ge=0, le=9)
    keep_original: bool = True


class EpubSettings(_Section):
    default_author: str = "Unknown"
    chapter_pattern: str = DEFAULT_CHAPTER_PATTERN
    language: str = "zh-CN"


class CrawlerSettings(_Section):
    base_url: str = ""
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_concurrent_downloads: int = Field(default=5, ge=1)
    page_delay_seconds: float = Field(default=0.5, ge=0)
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    verify_ssl: bool = True


class AppConfig(_Section):
    general: GeneralSettings = Field(default_factory=GeneralSettings)
    tasks: TaskQueueSettings = Field(default_factory=TaskQueueSettings)
    shortcuts: ShortcutSettings = Field(default_factory=ShortcutSettings)
    archives: ArchiveSettings = Field(default_factory=ArchiveSettings)
    epub: EpubSettings = Field(default_factory=EpubSettings)
    crawler: CrawlerSettings = Field(default_factory=CrawlerSettings)


# --- Manager ---
class ConfigManager:
    """
    Manages application configuration with persistence and reactivity.
    """
    def __init__(self, filepath: str = "config.json"):
        self.filepath = str(filepath)
        self._data = AppConfig()
        self.on_changed = Signal("ConfigChanged")
        self._load()

    @property
    def data(self) -> AppConfig:
        return self._data

    def update(self, section: str, key: str, value: Any):
        """Update a setting, validate via Pydantic, autosave, and emit change event."""
        section_obj = getattr(self._data, section, None)
        if not isinstance(section_obj, BaseModel):
            raise ValueError(f"Invalid section: {section}")
        if key not in type(section_obj).model_fields:
            raise ValueError(f"Invalid key: {key} in section {section}")

        setattr(section_obj, key, value)
        self._save()
        self.on_changed.emit(section, key, getattr(section_obj, key))

    def get(self, section: str, key: str) -> Any:
        section_obj = getattr(self._data, section)
        return getattr(section_obj, key)

    def _load(self):
        """Load settings from JSON or TOML file if present; otherwise keep defaults."""
        if os.path.isfile(self.filepath):
            try:
                if self.filepath.endswith('.toml'):
                    import tomllib
                    with open(self.filepath, "rb") as f:
                        raw = tomllib.load(f)
                else:
                    with open(self.filepath, "r", encoding="utf-8") as f:
                        raw = json.load(f)
                self._data = AppConfig.model_validate(raw)
            except Exception as e:
                logger.error(f"Failed to load config from {self.filepath}: {e}")
                self._save()
        else:
            self._save()

    def _save(self):
        """Persist current config to JSON file."""
        if self.filepath.endswith('.toml'):
            # TOML configs are hand-edited and read-only for the app
            return
        try:
            dirname = os.path.dirname(self.filepath)
            if dirname:
                os.makedirs(dirname, exist_ok=True)
            with open(self.filepath, "w", encoding="utf-8") as f:
                json.dump(self._data.model_dump(), f, indent=4, ensure_ascii=False)
        except Exception as e:
            logger.error(f"Failed to save config to {self.filepath}: {e}")
