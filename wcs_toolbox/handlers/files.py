"""
Filesystem helpers shared by the handlers: extension sets, name de-duplication, zip writing.
"""
import os
import re
import zipfile
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

VIDEO_EXTENSIONS = frozenset({
    '.mp4', '.avi', '.mkv', '.mov', '.wmv', '.flv', '.webm',
    '.m4v', '.mpeg', '.mpg', '.3gp', '.3g2', '.ts', '.mts',
    '.m2ts', '.vob', '.ogv', '.rm', '.rmvb', '.asf', '.divx',
})

IMAGE_EXTENSIONS = frozenset({
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp', '.tiff',
    '.tif', '.ico', '.svg', '.heic', '.heif', '.raw', '.psd',
})

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def is_video(path) -> bool:
    return Path(path).suffix.lower() in VIDEO_EXTENSIONS


def is_image(path) -> bool:
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def sanitize_filename(name: str, max_length: int = 100) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", name).strip().rstrip(".")
    return cleaned[:max_length] or "untitled"


def unique_path(directory, filename: str, reserved: Optional[Set[Path]] = None) -> Path:
    """
    First free path for filename in directory: name.ext, name_1.ext, name_2.ext, ...

    Paths in reserved count as taken even if they do not exist yet.
    """
    directory = Path(directory)
    candidate = directory / filename
    stem, suffix = Path(filename).stem, Path(filename).suffix
    counter = 1
    while candidate.exists() or candidate.is_symlink() or (reserved and candidate in reserved):
        candidate = directory / f"{stem}_{counter}{suffix}"
        counter += 1
    if reserved is not None:
        reserved.add(candidate)
    return candidate


def walk_files(root) -> List[Path]:
    """All regular files below root, sorted for a stable archive order."""
    found: List[Path] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            found.append(Path(dirpath) / filename)
    return sorted(found)


def zip_files(dest, files: Iterable[Tuple[Path, str]], compression_level: int = 1) -> int:
    """
    Write (source path, archive name) pairs into a deflated zip. Returns the entry count.

    A partially written archive is removed when writing fails.
    """
    dest = Path(dest)
    count = 0
    try:
        with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED,
                             compresslevel=compression_level) as zf:
            for source, arcname in files:
                zf.write(source, arcname)
                count += 1
    except BaseException:
        dest.unlink(missing_ok=True)
        raise
    return count
