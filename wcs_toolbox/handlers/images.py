"""
pack-images: one zip per image folder.
"""
import asyncio
from pathlib import Path
from typing import List, Optional
from loguru import logger

from wcs_toolbox.core.tasks import ProgressReporter
from .files import is_image, unique_path, walk_files, zip_files
from .results import CamelModel, FolderInfo, PackResult

TASK_TYPE = "pack-images"


class PackImagesParams(CamelModel):
    folders: List[FolderInfo]
    target_path: str
    compression_level: Optional[int] = None


def collect_images(folder: Path) -> List[Path]:
    return [p for p in walk_files(folder) if is_image(p)]


class ImagePackHandler:
    def __init__(self, compression_level: int = 1):
        self.compression_level = compression_level

    async def run(self, data, progress: ProgressReporter) -> dict:
        params = PackImagesParams.model_validate(data)
        level = self.compression_level if params.compression_level is None else params.compression_level
        target = Path(params.target_path)
        target.mkdir(parents=True, exist_ok=True)

        result = PackResult()
        total = len(params.folders)
        for index, folder in enumerate(params.folders, start=1):
            try:
                packed = await asyncio.to_thread(self._pack_one, folder, target, level)
                result.total_images += packed
                result.ok()
            except Exception as e:
                logger.warning(f"Packing {folder.name} failed: {e}")
                result.fail(folder.name, e)
            progress.advance(index, total)

        logger.info(f"Image packing: {result.success} zip(s), {result.total_images} image(s), {result.failed} failed")
        return result.to_dict()

    def _pack_one(self, folder: FolderInfo, target: Path, level: int) -> int:
        source = Path(folder.path)
        if not source.is_dir():
            raise FileNotFoundError(f"Folder not found: {folder.path}")
        images = collect_images(source)
        if not images:
            raise ValueError("No images found")
        dest = unique_path(target, f"{folder.name}.zip")
        return zip_files(dest, ((p, p.relative_to(source).as_posix()) for p in images), level)
