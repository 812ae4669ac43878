from io import BytesIO

import pytest

from skillhub.core.storage import LocalStorageService


async def test_upload_download_round_trip(storage: LocalStorageService):
    await storage.upload_file(BytesIO(b"payload"), "skills/zip/abc.zip", content_type="application/zip")

    buffer = BytesIO()
    await storage.download_file("skills/zip/abc.zip", buffer)

    assert buffer.getvalue() == b"payload"
    assert await storage.file_exists("skills/zip/abc.zip")


async def test_list_and_delete(storage: LocalStorageService):
    await storage.upload_file(BytesIO(b"a"), "skills/source_files/h/a.md")
    await storage.upload_file(BytesIO(b"bb"), "uploads/x/b.zip")

    listed = await storage.list_files(prefix="skills/")
    assert listed == [{"key": "skills/source_files/h/a.md", "size": 1}]

    await storage.delete_files(["skills/source_files/h/a.md", "missing/key"])
    assert not await storage.file_exists("skills/source_files/h/a.md")


async def test_download_missing_object(storage: LocalStorageService):
    with pytest.raises(FileNotFoundError):
        await storage.download_file("nope.bin", BytesIO())


@pytest.mark.parametrize("key", ["../escape", "/abs/key", "a//b", "a/./b"])
async def test_rejects_invalid_keys(storage: LocalStorageService, key: str):
    with pytest.raises(ValueError, match="Invalid storage key"):
        await storage.file_exists(key)
