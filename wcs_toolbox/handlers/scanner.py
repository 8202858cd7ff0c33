"""
Folder scanners.

Build the item lists the presentation layer puts into task payloads
(videos for shortcuts, .7z archives, image folders, text files).
"""
import os
from pathlib import Path
from typing import List
from loguru import logger

from .files import is_image, is_video
from .results import FileInfo, FolderInfo, VideoFile


def _size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError:
        return 0


def scan_videos(root) -> List[VideoFile]:
    """
    Recursively collect video files.

    parent_folder is the name of the directory holding the video.
    """
    root = Path(root)
    videos: List[VideoFile] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        parent = Path(dirpath)
        for filename in sorted(filenames):
            if not is_video(filename):
                continue
            path = parent / filename
            videos.append(VideoFile(name=filename, path=str(path), size=_size(path),
                                    parent_folder=parent.name))
    logger.debug(f"Found {len(videos)} video(s) under {root}")
    return videos


def _scan_by_suffix(root, suffix: str) -> List[FileInfo]:
    files: List[FileInfo] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in sorted(filenames):
            if filename.lower().endswith(suffix):
                path = Path(dirpath) / filename
                files.append(FileInfo(name=filename, path=str(path), size=_size(path)))
    return files


def scan_7z_files(root) -> List[FileInfo]:
    return _scan_by_suffix(root, ".7z")


def scan_txt_files(root) -> List[FileInfo]:
    return _scan_by_suffix(root, ".txt")


def scan_image_folders(root) -> List[FolderInfo]:
    """Sub-folders of root (at any depth, root excluded) that directly contain images."""
    root = Path(root)
    folders: List[FolderInfo] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        folder = Path(dirpath)
        if folder == root:
            continue
        images = [folder / f for f in filenames if is_image(f)]
        if images:
            folders.append(FolderInfo(
                name=folder.name,
                path=str(folder),
                image_count=len(images),
                total_size=sum(_size(p) for p in images),
            ))
    return folders
