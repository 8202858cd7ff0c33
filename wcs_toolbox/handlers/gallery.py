"""
gallery-search / gallery-crawl: scrape a gallery site's search pages and pack each
gallery's images into a zip.

Both handlers share one aiohttp session per run and honour a handler-level
cancel flag; the task queue itself never interrupts a running crawl.
"""
import asyncio
import re
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Set, Tuple
from urllib.parse import quote, urljoin, urlparse

import aiohttp
from bs4 import BeautifulSoup
from loguru import logger
from pydantic import Field

from wcs_toolbox.core.config import CrawlerSettings
from wcs_toolbox.core.tasks import ProgressReporter
from .files import sanitize_filename, unique_path
from .results import BatchResult, CamelModel, Gallery

SEARCH_TASK_TYPE = "gallery-search"
CRAWL_TASK_TYPE = "gallery-crawl"

GALLERY_LINK_SELECTOR = ".item-link, a.item-link, .post-item a"
GALLERY_TITLE_SELECTOR = ".item-title, .post-title, h2, h3"
GALLERY_IMAGE_SELECTOR = "#masonry .post-item img, .post-item-img, .post-content img, article img"

_IMAGE_COUNT = re.compile(r"\[(\d+)P\]")
_SKIPPED_IMAGE_MARKERS = ("logo", "ads")


class CrawlCancelledError(Exception):
    """Raised inside a handler after GalleryHandler.cancel() was called."""


class SearchPage(CamelModel):
    page: int
    galleries: List[Gallery] = Field(default_factory=list)
    has_next: bool = False


class GallerySearchParams(CamelModel):
    keyword: str = Field(min_length=1)
    max_pages: int = Field(default=5, ge=1)


class GalleryRef(CamelModel):
    url: str
    title: str = ""


class GalleryCrawlParams(CamelModel):
    galleries: List[GalleryRef]
    output_path: str


class CrawlResult(BatchResult):
    total_images: int = 0


def search_url(base_url: str, keyword: str, page: int = 1) -> str:
    url = f"{base_url.rstrip('/')}/search/{quote(keyword)}/"
    if page > 1:
        url += f"{page}/"
    return url


def parse_search_page(html: str, base_url: str, page: int = 1) -> SearchPage:
    """Galleries listed on one search result page, deduplicated by URL, in page order."""
    soup = BeautifulSoup(html, "html.parser")
    galleries: List[Gallery] = []
    seen: Set[str] = set()

    for link in soup.select(GALLERY_LINK_SELECTOR):
        href = link.get("href")
        if not href or not href.endswith(".html"):
            continue
        if "/r15/" not in href and "/r18/" not in href:
            continue

        url = urljoin(base_url.rstrip("/") + "/", href)
        if url in seen:
            continue
        seen.add(url)

        title_node = link.select_one(GALLERY_TITLE_SELECTOR)
        title = title_node.get_text(strip=True) if title_node else ""
        title = title or link.get("title", "") or link.get_text(strip=True)

        counts = _IMAGE_COUNT.findall(title)
        img = link.find("img")
        thumbnail = (img.get("src") or img.get("data-src")) if img else None

        galleries.append(Gallery(
            url=url,
            title=title,
            image_count=int(counts[-1]) if counts else 0,
            thumbnail=thumbnail or None,
        ))

    next_marker = f"/{page + 1}/"
    has_next = any(next_marker in a.get("href", "") for a in soup.select("a[href*='/search/']"))
    return SearchPage(page=page, galleries=galleries, has_next=has_next)


def parse_gallery_images(html: str, page_url: str = "") -> List[str]:
    """Image URLs of a gallery page; lazy-load data-src wins over src."""
    soup = BeautifulSoup(html, "html.parser")
    images: List[str] = []
    for img in soup.select(GALLERY_IMAGE_SELECTOR):
        src = img.get("data-src") or img.get("src")
        if not src or any(marker in src for marker in _SKIPPED_IMAGE_MARKERS):
            continue
        if src.startswith("//"):
            src = "https:" + src
        elif not src.startswith("http"):
            src = urljoin(page_url, src)
        if src not in images:
            images.append(src)
    return images


def image_entry_name(index: int, url: str) -> str:
    ext = PurePosixPath(urlparse(url).path).suffix or ".jpg"
    return f"{index:04d}{ext}"


class GalleryHandler(ABC):
    """Shared HTTP plumbing and cooperative cancellation for the gallery handlers."""

    def __init__(self, settings: Optional[CrawlerSettings] = None):
        self.settings = settings or CrawlerSettings()
        self._cancel_events: Set[asyncio.Event] = set()

    def cancel(self) -> int:
        """
        Stop every run of this handler at its next page, gallery or download boundary.

        Returns the number of runs signalled.
        """
        active = [e for e in self._cancel_events if not e.is_set()]
        if active:
            logger.info(f"Cancelling {len(active)} gallery run(s)")
        for event in active:
            event.set()
        return len(active)

    def _base_url(self) -> str:
        if not self.settings.base_url:
            raise ValueError("Crawler base_url is not configured")
        return self.settings.base_url

    def _session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds),
            connector=aiohttp.TCPConnector(ssl=self.settings.verify_ssl),
            headers={"User-Agent": self.settings.user_agent, "Referer": self.settings.base_url},
        )

    @staticmethod
    def _check(cancelled: asyncio.Event) -> None:
        if cancelled.is_set():
            raise CrawlCancelledError("Crawl cancelled")

    async def _fetch_text(self, session: aiohttp.ClientSession, url: str) -> str:
        async with session.get(url) as response:
            if response.status != 200:
                raise RuntimeError(f"Status code: {response.status} for {url}")
            return await response.text(errors="replace")

    async def _fetch_bytes(self, session: aiohttp.ClientSession, url: str) -> bytes:
        async with session.get(url) as response:
            if response.status != 200:
                raise RuntimeError(f"Status code: {response.status} for {url}")
            return await response.read()

    async def run(self, data, progress: ProgressReporter) -> dict:
        cancelled = asyncio.Event()
        self._cancel_events.add(cancelled)
        try:
            return await self._run(data, progress, cancelled)
        finally:
            self._cancel_events.discard(cancelled)

    @abstractmethod
    async def _run(self, data, progress: ProgressReporter, cancelled: asyncio.Event) -> dict:
        """One search or crawl run; check cancelled between units of work."""


class GallerySearchHandler(GalleryHandler):

    async def _run(self, data, progress, cancelled):
        params = GallerySearchParams.model_validate(data)
        base_url = self._base_url()
        galleries: Dict[str, Gallery] = {}
        pages_loaded = 0
        has_more = False

        async with self._session() as session:
            for page in range(1, params.max_pages + 1):
                self._check(cancelled)
                if page > 1 and self.settings.page_delay_seconds:
                    await asyncio.sleep(self.settings.page_delay_seconds)

                url = search_url(base_url, params.keyword, page)
                logger.debug(f"Fetching search page {page}: {url}")
                try:
                    html = await self._fetch_text(session, url)
                except (aiohttp.ClientError, asyncio.TimeoutError, RuntimeError) as e:
                    if page == 1:
                        raise
                    # keep what the earlier pages found
                    logger.warning(f"Search page {page} failed, stopping: {e}")
                    break
                result = parse_search_page(html, base_url, page)
                pages_loaded = page
                has_more = result.has_next
                for gallery in result.galleries:
                    galleries.setdefault(gallery.url, gallery)

                progress.advance(page, params.max_pages)
                if not result.has_next:
                    break

        logger.info(f"Search '{params.keyword}': {len(galleries)} galleries over {pages_loaded} page(s)")
        return {
            "galleries": [g.model_dump(mode="json", by_alias=True) for g in galleries.values()],
            "pagesLoaded": pages_loaded,
            "hasMore": has_more,
        }


class GalleryCrawlHandler(GalleryHandler):

    async def _run(self, data, progress, cancelled):
        params = GalleryCrawlParams.model_validate(data)
        self._base_url()
        output = Path(params.output_path)
        output.mkdir(parents=True, exist_ok=True)

        result = CrawlResult()
        total = len(params.galleries)
        async with self._session() as session:
            for index, gallery in enumerate(params.galleries, start=1):
                self._check(cancelled)
                name = gallery.title or gallery.url
                try:
                    downloaded = await self._crawl_one(session, gallery, output, cancelled)
                    result.total_images += downloaded
                    result.ok()
                except CrawlCancelledError:
                    raise
                except Exception as e:
                    logger.warning(f"Gallery {name} failed: {e}")
                    result.fail(name, e)
                progress.advance(index, total)

        logger.info(f"Crawl: {result.success} gallery zip(s), {result.total_images} image(s), {result.failed} failed")
        return result.to_dict()

    async def _crawl_one(self, session: aiohttp.ClientSession, gallery: GalleryRef,
                         output: Path, cancelled: asyncio.Event) -> int:
        images = parse_gallery_images(await self._fetch_text(session, gallery.url), gallery.url)
        if not images:
            raise ValueError("No images found")

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_downloads)
        downloaded: Dict[int, Tuple[str, bytes]] = {}

        async def download(index: int, url: str) -> None:
            async with semaphore:
                if cancelled.is_set():
                    return
                try:
                    downloaded[index] = (image_entry_name(index, url), await self._fetch_bytes(session, url))
                except (aiohttp.ClientError, asyncio.TimeoutError, RuntimeError) as e:
                    logger.debug(f"Download failed {url}: {e}")

        await asyncio.gather(*(download(i, url) for i, url in enumerate(images, start=1)))
        self._check(cancelled)
        if not downloaded:
            raise RuntimeError("All downloads failed")

        dest = unique_path(output, f"{sanitize_filename(gallery.title or 'gallery')}.zip")
        entries = [downloaded[i] for i in sorted(downloaded)]
        await asyncio.to_thread(self._write_zip, dest, entries)
        logger.debug(f"Packed {len(entries)}/{len(images)} image(s) into {dest.name}")
        return len(entries)

    @staticmethod
    def _write_zip(dest: Path, entries: List[Tuple[str, bytes]]) -> None:
        try:
            with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_STORED) as zf:
                for name, payload in entries:
                    zf.writestr(name, payload)
        except BaseException:
            dest.unlink(missing_ok=True)
            raise
