"""
Unit tests for the filesystem attachment store.
"""
import pytest

from backend.app.core.errors import ValidationFailed
from backend.app.services.attachment_store import FilesystemAttachmentStore, sanitise_filename


@pytest.fixture
def store(tmp_path):
    return FilesystemAttachmentStore(tmp_path, max_bytes=16)


@pytest.mark.asyncio
async def test_save_returns_unique_prefixed_tokens(store):
    """Each save yields a new token under uploads/, even for identical content."""
    first = await store.save(b"png-bytes", "photo.png")
    second = await store.save(b"png-bytes", "photo.png")

    assert first != second
    assert first.startswith("uploads/") and first.endswith("_photo.png")
    assert await store.exists(first) and await store.exists(second)
    assert store.path_for(first).read_bytes() == b"png-bytes"


@pytest.mark.asyncio
async def test_delete_is_idempotent(store):
    token = await store.save(b"x", "a.txt")

    assert await store.delete(token) is True
    assert not await store.exists(token)
    assert await store.delete(token) is False


@pytest.mark.asyncio
async def test_save_rejects_oversized_upload(store, tmp_path):
    with pytest.raises(ValidationFailed):
        await store.save(b"x" * 17, "big.bin")
    assert list((tmp_path / "uploads").iterdir()) == []


@pytest.mark.parametrize("token", [
    "uploads/../../etc/passwd",
    "../uploads/a.png",
    "other/a.png",
    "",
])
@pytest.mark.asyncio
async def test_path_for_rejects_tokens_outside_upload_dir(store, token):
    with pytest.raises(ValueError):
        store.path_for(token)
    assert await store.exists(token) is False


def test_sanitise_filename_strips_directories_and_unsafe_chars():
    assert sanitise_filename("../../evil name!.png") == "evil_name_.png"
    assert sanitise_filename("C:\\Users\\me\\pic.jpg") == "pic.jpg"
    assert sanitise_filename("...") == "attachment"


def test_healthy_when_directory_writable(store):
    assert store.healthy() is True
