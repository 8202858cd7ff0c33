"""
pack-images handler tests.
"""
import zipfile
from unittest.mock import MagicMock

import pytest

from wcs_toolbox.handlers.images import ImagePackHandler


@pytest.fixture
def album(tmp_path):
    folder = tmp_path / "album"
    (folder / "extra").mkdir(parents=True)
    (folder / "1.jpg").write_bytes(b"a")
    (folder / "2.png").write_bytes(b"bb")
    (folder / "extra" / "3.webp").write_bytes(b"ccc")
    (folder / "readme.txt").write_text("skip")
    return folder


def folder_info(folder):
    return {"name": folder.name, "path": str(folder)}


class TestImagePackHandler:

    @pytest.mark.asyncio
    async def test_packs_images_only(self, tmp_path, album):
        target = tmp_path / "zips"

        result = await ImagePackHandler().run({"folders": [folder_info(album)], "targetPath": str(target)},
                                              MagicMock())

        assert result == {"success": 1, "failed": 0, "errors": [], "totalImages": 3}
        with zipfile.ZipFile(target / "album.zip") as zf:
            assert sorted(zf.namelist()) == ["1.jpg", "2.png", "extra/3.webp"]

    @pytest.mark.asyncio
    async def test_existing_zip_not_overwritten(self, tmp_path, album):
        target = tmp_path / "zips"
        target.mkdir()
        (target / "album.zip").write_bytes(b"old")

        await ImagePackHandler().run({"folders": [folder_info(album)], "targetPath": str(target)}, MagicMock())

        assert (target / "album.zip").read_bytes() == b"old"
        assert (target / "album_1.zip").exists()

    @pytest.mark.asyncio
    async def test_empty_and_missing_folders_are_item_errors(self, tmp_path, album):
        empty = tmp_path / "empty"
        empty.mkdir()
        missing = tmp_path / "missing"
        progress = MagicMock()

        result = await ImagePackHandler().run(
            {"folders": [folder_info(empty), folder_info(missing), folder_info(album)],
             "targetPath": str(tmp_path / "zips")}, progress)

        assert result["success"] == 1
        assert result["failed"] == 2
        assert [e["item"] for e in result["errors"]] == ["empty", "missing"]
        assert result["errors"][0]["error"] == "No images found"
        assert progress.advance.call_count == 3
        assert not (tmp_path / "zips" / "empty.zip").exists()

    @pytest.mark.asyncio
    async def test_compression_level_override(self, tmp_path, album):
        target = tmp_path / "zips"
        await ImagePackHandler(compression_level=1).run(
            {"folders": [folder_info(album)], "targetPath": str(target), "compressionLevel": 9}, MagicMock())
        with zipfile.ZipFile(target / "album.zip") as zf:
            assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())
