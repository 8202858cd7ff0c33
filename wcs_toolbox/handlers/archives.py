"""
convert-7z-to-zip: re-pack .7z archives as zip, pulling videos out on the way.
"""
import asyncio
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

import py7zr
from loguru import logger

from wcs_toolbox.core.tasks import ProgressReporter
from .files import is_video, unique_path, walk_files, zip_files
from .results import ArchiveResult, CamelModel, FileInfo

TASK_TYPE = "convert-7z-to-zip"


class Convert7zParams(CamelModel):
    files: List[FileInfo]
    video_output_path: str
    keep_original: Optional[bool] = None
    compression_level: Optional[int] = None


def extract_7z(archive: Path, dest: Path) -> None:
    with py7zr.SevenZipFile(archive, mode="r") as z:
        z.extractall(path=dest)


class ArchiveConvertHandler:
    def __init__(self, compression_level: int = 1, keep_original: bool = True):
        self.compression_level = compression_level
        self.keep_original = keep_original

    async def run(self, data, progress: ProgressReporter) -> dict:
        params = Convert7zParams.model_validate(data)
        keep = self.keep_original if params.keep_original is None else params.keep_original
        level = self.compression_level if params.compression_level is None else params.compression_level

        video_out = Path(params.video_output_path)
        video_out.mkdir(parents=True, exist_ok=True)

        result = ArchiveResult()
        total = len(params.files)
        for index, info in enumerate(params.files, start=1):
            try:
                extracted = await asyncio.to_thread(self._convert_one, Path(info.path), video_out, level, keep)
                result.videos_extracted += extracted
                result.ok()
            except Exception as e:
                logger.warning(f"Converting {info.name} failed: {e}")
                result.fail(info.name, e)
            progress.advance(index, total)

        logger.info(f"7z->zip: {result.success} converted, {result.failed} failed, "
                    f"{result.videos_extracted} video(s) extracted")
        return result.to_dict()

    def _convert_one(self, archive: Path, video_out: Path, level: int, keep_original: bool) -> int:
        """Returns the number of videos copied out. The temp dir is removed whatever happens."""
        with tempfile.TemporaryDirectory(prefix="wcs_extract_") as tmp:
            tmp_dir = Path(tmp)
            extract_7z(archive, tmp_dir)

            videos, others = [], []
            for path in walk_files(tmp_dir):
                (videos if is_video(path) else others).append(path)

            for video in videos:
                dest = unique_path(video_out, f"{archive.stem}_{video.name}")
                shutil.copy2(video, dest)

            if others:
                zip_path = archive.with_suffix(".zip")
                zip_files(zip_path, ((p, p.relative_to(tmp_dir).as_posix()) for p in others), level)

        if not keep_original:
            archive.unlink()
        return len(videos)
