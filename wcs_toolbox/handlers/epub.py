"""
convert-txt-to-epub: split plain-text novels into chapters and write EPUB 2 files.
"""
import asyncio
import re
import uuid
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from xml.sax.saxutils import escape

from loguru import logger
from pydantic import Field

from wcs_toolbox.core.config import DEFAULT_CHAPTER_PATTERN
from wcs_toolbox.core.tasks import ProgressReporter
from .results import BatchResult, CamelModel, FileInfo

TASK_TYPE = "convert-txt-to-epub"

PREFACE_TITLE = "前言"
FULL_TEXT_TITLE = "全文"
PREVIEW_LENGTH = 100

_ENCODINGS = ("utf-8-sig", "gb18030")


class EpubOptions(CamelModel):
    author: Optional[str] = None
    custom_pattern: Optional[str] = None


class ConvertTxtParams(CamelModel):
    files: List[FileInfo]
    output_path: str
    options: EpubOptions = Field(default_factory=EpubOptions)


@dataclass
class Chapter:
    title: str
    content: str


def read_text(path) -> str:
    """Decode as UTF-8 first, then GB18030 (common for Chinese novels)."""
    raw = Path(path).read_bytes()
    for encoding in _ENCODINGS:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    return raw.decode("utf-8", errors="replace")


def compile_chapter_pattern(pattern: Optional[str], default: str = DEFAULT_CHAPTER_PATTERN) -> "re.Pattern[str]":
    """Custom patterns that fail to compile fall back to the default heading pattern."""
    if pattern:
        try:
            return re.compile(pattern, re.MULTILINE)
        except re.error as e:
            logger.warning(f"Invalid chapter pattern {pattern!r}, using default: {e}")
    return re.compile(default, re.MULTILINE)


def parse_chapters(content: str, pattern: Optional[str] = None,
                   default_pattern: str = DEFAULT_CHAPTER_PATTERN) -> List[Chapter]:
    regex = compile_chapter_pattern(pattern, default_pattern)
    matches = [m for m in regex.finditer(content) if m.end() > m.start()]
    if not matches:
        return [Chapter(FULL_TEXT_TITLE, content)]

    chapters: List[Chapter] = []
    preface = content[:matches[0].start()]
    if preface.strip():
        chapters.append(Chapter(PREFACE_TITLE, preface))

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        chapters.append(Chapter(match.group(0).strip(), content[match.end():end]))
    return chapters


def preview_chapters(path, pattern: Optional[str] = None) -> List[dict]:
    """Chapter outline of a text file: index, title, length, and a short preview."""
    outline = []
    for index, chapter in enumerate(parse_chapters(read_text(path), pattern), start=1):
        text = chapter.content.strip()
        preview = text[:PREVIEW_LENGTH] + ("..." if len(text) > PREVIEW_LENGTH else "")
        outline.append({
            "index": index,
            "title": chapter.title,
            "contentLength": len(chapter.content),
            "preview": preview,
        })
    return outline


_CONTAINER_XML = """<?xml version="1.0"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""


def _chapter_xhtml(chapter: Chapter) -> str:
    title = escape(chapter.title)
    paragraphs = "\n".join(
        f"<p>{escape(line.strip())}</p>" for line in chapter.content.splitlines() if line.strip()
    )
    return f"""<?xml version="1.0" encoding="utf-8"?>
<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.1//EN" "http://www.w3.org/TR/xhtml11/DTD/xhtml11.dtd">
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>{title}</title></head>
<body>
<h1>{title}</h1>
{paragraphs}
</body>
</html>
"""


def write_epub(dest, title: str, author: str, chapters: List[Chapter], language: str = "zh-CN") -> None:
    """Write an EPUB 2 package. mimetype must be the first entry and stored uncompressed."""
    dest = Path(dest)
    book_id = f"urn:uuid:{uuid.uuid4()}"
    manifest, spine, nav_points = [], [], []
    for i, chapter in enumerate(chapters, start=1):
        manifest.append(f'<item id="ch{i}" href="chapter{i}.xhtml" media-type="application/xhtml+xml"/>')
        spine.append(f'<itemref idref="ch{i}"/>')
        nav_points.append(
            f'<navPoint id="navPoint-{i}" playOrder="{i}">'
            f'<navLabel><text>{escape(chapter.title)}</text></navLabel>'
            f'<content src="chapter{i}.xhtml"/></navPoint>'
        )

    opf = f"""<?xml version="1.0" encoding="utf-8"?>
<package xmlns="http://www.idpf.org/2007/opf" unique-identifier="BookId" version="2.0">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>{escape(title)}</dc:title>
    <dc:creator>{escape(author)}</dc:creator>
    <dc:language>{escape(language)}</dc:language>
    <dc:identifier id="BookId">{book_id}</dc:identifier>
  </metadata>
  <manifest>
    <item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>
    {chr(10).join(manifest)}
  </manifest>
  <spine toc="ncx">
    {chr(10).join(spine)}
  </spine>
</package>
"""
    ncx = f"""<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <head><meta name="dtb:uid" content="{book_id}"/></head>
  <docTitle><text>{escape(title)}</text></docTitle>
  <navMap>
    {chr(10).join(nav_points)}
  </navMap>
</ncx>
"""
    try:
        with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(zipfile.ZipInfo("mimetype"), "application/epub+zip", compress_type=zipfile.ZIP_STORED)
            zf.writestr("META-INF/container.xml", _CONTAINER_XML)
            zf.writestr("OEBPS/content.opf", opf)
            zf.writestr("OEBPS/toc.ncx", ncx)
            for i, chapter in enumerate(chapters, start=1):
                zf.writestr(f"OEBPS/chapter{i}.xhtml", _chapter_xhtml(chapter))
    except BaseException:
        dest.unlink(missing_ok=True)
        raise


class EpubConvertHandler:
    def __init__(self, default_author: str = "Unknown", chapter_pattern: str = DEFAULT_CHAPTER_PATTERN,
                 language: str = "zh-CN"):
        self.default_author = default_author
        self.chapter_pattern = chapter_pattern
        self.language = language

    async def run(self, data, progress: ProgressReporter) -> dict:
        params = ConvertTxtParams.model_validate(data)
        author = params.options.author or self.default_author
        output = Path(params.output_path)
        output.mkdir(parents=True, exist_ok=True)

        result = BatchResult()
        total = len(params.files)
        for index, info in enumerate(params.files, start=1):
            try:
                await asyncio.to_thread(self._convert_one, info, output, author, params.options.custom_pattern)
                result.ok()
            except Exception as e:
                logger.warning(f"EPUB conversion of {info.name} failed: {e}")
                result.fail(info.name, e)
            progress.advance(index, total)

        logger.info(f"txt->epub: {result.success} converted, {result.failed} failed")
        return result.to_dict()

    def _convert_one(self, info: FileInfo, output: Path, author: str, pattern: Optional[str]) -> Path:
        chapters = parse_chapters(read_text(info.path), pattern, self.chapter_pattern)
        title = Path(info.name).stem
        dest = output / f"{title}.epub"
        write_epub(dest, title, author, chapters, self.language)
        return dest
