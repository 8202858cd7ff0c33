"""
Shared payload/result models for the bundled task handlers.

Payloads arrive from the presentation layer as camelCase dicts; results are
returned as camelCase dicts so they can be shown without further mapping.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileInfo(CamelModel):
    name: str
    path: str
    size: int = 0


class VideoFile(FileInfo):
    parent_folder: str = ""


class FolderInfo(CamelModel):
    name: str
    path: str
    image_count: int = 0
    total_size: int = 0


class ErrorDetail(CamelModel):
    item: str
    error: str


class BatchResult(CamelModel):
    success: int = 0
    failed: int = 0
    errors: List[ErrorDetail] = Field(default_factory=list)

    def ok(self) -> None:
        self.success += 1

    def fail(self, item: str, error: Any) -> None:
        self.failed += 1
        self.add_error(item, error)

    def add_error(self, item: str, error: Any) -> None:
        self.errors.append(ErrorDetail(item=item, error=str(error) or error.__class__.__name__))

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ArchiveResult(BatchResult):
    videos_extracted: int = 0


class PackResult(BatchResult):
    total_images: int = 0


class Gallery(CamelModel):
    url: str
    title: str = ""
    image_count: int = 0
    thumbnail: Optional[str] = None
