"""Tests for the filesystem attachment backend"""
import hashlib

import pytest

from core.exceptions import (
    StorageAlreadyExistsError,
    StorageChecksumMismatchError,
    StorageDeleteError,
    StorageDownloadError,
    StorageNotFoundError,
    StoragePermissionError,
    StorageUploadError,
)
from services.storage.local_storage import LocalStorageService, StoredFile

CONTENT = b"Quarterly pipeline review notes"
CHECKSUM = hashlib.sha256(CONTENT).hexdigest()
REF = "organizations/org_1/lead/lead_1/att_1/notes.txt"


@pytest.fixture
def storage(tmp_path):
    return LocalStorageService(storage_root=str(tmp_path / "files"))


class TestPut:
    async def test_writes_file_and_reports_metadata(self, storage):
        stored = await storage.put(REF, CONTENT, CHECKSUM)

        assert stored == StoredFile(storage_ref=REF, checksum=CHECKSUM, size_bytes=len(CONTENT))
        assert storage.resolve(REF).read_bytes() == CONTENT

    async def test_checksum_mismatch_writes_nothing(self, storage):
        """
        GIVEN content whose hash differs from the declared checksum
        WHEN it is stored
        THEN the write is refused and no file or directory is created
        """
        with pytest.raises(StorageChecksumMismatchError):
            await storage.put(REF, CONTENT, "0" * 64)

        assert not (storage.storage_root / "organizations").exists()

    async def test_reference_is_never_overwritten(self, storage):
        await storage.put(REF, CONTENT, CHECKSUM)
        other = b"replacement"

        with pytest.raises(StorageAlreadyExistsError) as exc_info:
            await storage.put(REF, other, hashlib.sha256(other).hexdigest())

        assert exc_info.value.status_code == 500

        assert storage.resolve(REF).read_bytes() == CONTENT

    async def test_no_temp_files_are_left_behind(self, storage):
        await storage.put(REF, CONTENT, CHECKSUM)

        siblings = [p.name for p in storage.resolve(REF).parent.iterdir()]
        assert siblings == ["notes.txt"]


class TestPathValidation:
    @pytest.mark.parametrize(
        "ref",
        [
            "../outside.txt",
            "organizations/../../outside.txt",
            "organizations/org_1/../../../etc/passwd",
            ".",
        ],
    )
    def test_references_outside_the_root_are_rejected(self, storage, ref):
        with pytest.raises(StoragePermissionError) as exc_info:
            storage.resolve(ref)

        assert exc_info.value.status_code == 500

    async def test_put_rejects_traversal(self, storage):
        with pytest.raises(StoragePermissionError):
            await storage.put("../escape.txt", CONTENT, CHECKSUM)


class TestReadAndRemove:
    async def test_open_stream_yields_content(self, storage):
        await storage.put(REF, CONTENT, CHECKSUM)

        chunks = [chunk async for chunk in storage.open_stream(REF)]

        assert b"".join(chunks) == CONTENT

    async def test_large_file_is_streamed_in_chunks(self, storage):
        content = b"x" * (LocalStorageService.CHUNK_SIZE * 2 + 10)
        await storage.put(REF, content, hashlib.sha256(content).hexdigest())

        chunks = [chunk async for chunk in storage.open_stream(REF)]

        assert len(chunks) == 3
        assert b"".join(chunks) == content

    async def test_open_stream_of_missing_file(self, storage):
        with pytest.raises(StorageNotFoundError):
            async for _ in storage.open_stream(REF):
                pass

    async def test_remove_prunes_empty_directories(self, storage):
        """
        GIVEN two attachments of the same lead
        WHEN both are removed one after the other
        THEN shared directories survive the first removal and vanish after the second
        """
        second_ref = "organizations/org_1/lead/lead_1/att_2/deck.pdf"
        await storage.put(REF, CONTENT, CHECKSUM)
        await storage.put(second_ref, CONTENT, CHECKSUM)

        assert await storage.remove(REF) is True
        assert (storage.storage_root / "organizations/org_1/lead/lead_1").is_dir()
        assert not (storage.storage_root / "organizations/org_1/lead/lead_1/att_1").exists()

        assert await storage.remove(second_ref) is True
        assert not (storage.storage_root / "organizations").exists()
        assert storage.storage_root.is_dir()

    async def test_remove_missing_file_returns_false(self, storage):
        assert await storage.remove(REF) is False

    async def test_exists(self, storage):
        assert await storage.exists(REF) is False
        await storage.put(REF, CONTENT, CHECKSUM)
        assert await storage.exists(REF) is True


class TestErrorStatus:
    @pytest.mark.parametrize(
        ("error", "status_code"),
        [
            (StorageNotFoundError(REF), 404),
            (StorageAlreadyExistsError(REF), 500),
            (StoragePermissionError(REF, "write"), 500),
            (StorageChecksumMismatchError(REF, "a", "b"), 500),
            (StorageUploadError(REF, "disk full"), 500),
            (StorageDownloadError(REF, "io"), 500),
            (StorageDeleteError(REF, "io"), 500),
        ],
    )
    def test_only_missing_files_are_client_errors(self, error, status_code):
        """
        GIVEN any storage failure
        WHEN it is rendered
        THEN a missing file is 404 and every other storage fault is a server error
        """
        assert error.status_code == status_code
