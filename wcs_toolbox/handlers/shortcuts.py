"""
create-shortcuts: link scanned videos into one target folder.
"""
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Literal, Set
from loguru import logger

from wcs_toolbox.core.tasks import ProgressReporter
from .files import unique_path
from .results import BatchResult, CamelModel, VideoFile

TASK_TYPE = "create-shortcuts"


class CreateShortcutsParams(CamelModel):
    videos: List[VideoFile]
    target_path: str
    naming_mode: Literal["original", "folder", "folderOnly"] = "original"


def shortcut_stem(video: VideoFile, naming_mode: str) -> str:
    stem = Path(video.name).stem
    if naming_mode == "folder":
        return f"{video.parent_folder}_{stem}"
    if naming_mode == "folderOnly":
        return video.parent_folder or stem
    return stem


def _powershell_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


async def create_link(source: str, link: Path) -> None:
    """Symlink on POSIX, .lnk shortcut via WScript.Shell on Windows."""
    if sys.platform == "win32":
        script = (
            f"$s=(New-Object -COM WScript.Shell).CreateShortcut({_powershell_literal(str(link))});"
            f"$s.TargetPath={_powershell_literal(source)};$s.Save()"
        )
        proc = await asyncio.create_subprocess_exec(
            "powershell", "-NoProfile", "-Command", script,
            stdout=asyncio.subprocess.DEVNULL, stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise OSError(stderr.decode(errors="replace").strip() or f"powershell exited with {proc.returncode}")
        return
    await asyncio.to_thread(os.symlink, source, link)


class ShortcutHandler:
    def __init__(self, batch_size: int = 10):
        self.batch_size = max(1, batch_size)

    async def run(self, data, progress: ProgressReporter) -> dict:
        params = CreateShortcutsParams.model_validate(data)
        target = Path(params.target_path)
        target.mkdir(parents=True, exist_ok=True)

        result = BatchResult()
        total = len(params.videos)
        suffix = ".lnk" if sys.platform == "win32" else None
        reserved: Set[Path] = set()

        async def one(video: VideoFile, link: Path):
            if not Path(video.path).exists():
                result.fail(video.name, f"Source not found: {video.path}")
                return
            try:
                await create_link(video.path, link)
                result.ok()
            except Exception as e:
                logger.warning(f"Shortcut for {video.name} failed: {e}")
                result.fail(video.name, e)

        for start in range(0, total, self.batch_size):
            batch = params.videos[start:start + self.batch_size]
            jobs = []
            for video in batch:
                # names are reserved up front so concurrent links in a batch never collide
                ext = suffix or Path(video.name).suffix
                link = unique_path(target, shortcut_stem(video, params.naming_mode) + ext, reserved)
                jobs.append(one(video, link))
            await asyncio.gather(*jobs)
            progress.advance(start + len(batch), total)

        logger.info(f"Shortcuts: {result.success} created, {result.failed} failed in {target}")
        return result.to_dict()
