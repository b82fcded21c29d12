import asyncio
from uuid import uuid4

import pytest

from fileshare_client.exceptions import ConnectivityError, FileRecordNotFoundError, MinioError
from fileshare_client.models import FileStatus, RejectionReason

from conftest import MIB, make_file

pytestmark = pytest.mark.asyncio


async def test_upload_grows_listing_and_reports_success(fake_client):
    # --- ARRANGE ---
    before = await fake_client.list_files()
    batch = [make_file("report.pdf", 2 * MIB, "application/pdf"), make_file("photo.jpg", 3 * MIB, "image/jpeg")]

    # --- ACT ---
    report = await fake_client.upload(batch)

    # --- ASSERT ---
    after = await fake_client.list_files()
    assert len(after) == len(before) + 2
    assert report.summary.succeeded == 2
    assert [n.title for n in report.notifications] == ["Upload Successful"]
    # newest first
    assert [r.name for r in after] == ["photo.jpg", "report.pdf"]


async def test_oversized_file_never_reaches_the_stores(fake_client, object_store):
    report = await fake_client.upload([make_file("huge.zip", 60 * MIB)])

    assert object_store.calls == []
    assert len(report.outcome) == 0
    assert report.summary.succeeded == 0
    assert [r.reasons for r in report.summary.rejected] == [[RejectionReason.size]]
    assert report.notifications[0].title == "File Too Large"


async def test_second_identical_file_is_rejected_before_ingestion(fake_client, object_store):
    report = await fake_client.upload([make_file("a b.txt", 100), make_file("a b.txt", 100)])

    assert [r.status for r in report.outcome.results] == [FileStatus.success]
    assert [r.reasons for r in report.summary.rejected] == [[RejectionReason.duplicate]]
    assert len([c for c in object_store.calls if c[0] == "put"]) == 1
    assert [n.title for n in report.notifications] == ["Duplicate File", "Upload Successful"]


async def test_upload_raises_when_offline(fake_client, gate, object_store):
    gate.set_reachable(False)

    with pytest.raises(ConnectivityError):
        await fake_client.upload([make_file("a.txt", 1)])
    assert object_store.calls == []


async def test_upload_only_rejections_does_not_need_connectivity(fake_client, gate):
    gate.set_reachable(False)

    report = await fake_client.upload([make_file("tool.exe", 1)])

    assert report.summary.total == 0
    assert report.notifications[0].title == "Unsupported File Format"


async def test_upload_with_cancel_already_set(fake_client, metadata_store):
    cancel = asyncio.Event()
    cancel.set()

    report = await fake_client.upload([make_file("a.txt", 1), make_file("b.txt", 1)], cancel=cancel)

    assert report.outcome.cancelled
    assert report.summary.cancelled == 2
    assert metadata_store.rows == {}


async def test_get_file_and_content(fake_client):
    report = await fake_client.upload([make_file("notes.txt", 5)])
    record = report.outcome.results[0].record

    assert await fake_client.get_file(record.id) == record
    assert await fake_client.get_file_content(record.id) == b"xxxxx"


async def test_get_missing_file_raises(fake_client):
    with pytest.raises(FileRecordNotFoundError):
        await fake_client.get_file(uuid4())


async def test_delete_twice_is_safe(fake_client, object_store, metadata_store):
    # --- ARRANGE ---
    report = await fake_client.upload([make_file("notes.txt", 5)])
    record = report.outcome.results[0].record

    # --- ACT ---
    first = await fake_client.delete_file(record)
    second = await fake_client.delete_file(record)

    # --- ASSERT ---
    assert first is True
    assert second is False
    assert record.file_path not in object_store.objects
    assert metadata_store.rows == {}
    assert object_store.calls.count(("remove", record.file_path)) == 2


async def test_failed_object_delete_keeps_the_row(fake_client, object_store, metadata_store):
    report = await fake_client.upload([make_file("notes.txt", 5)])
    record = report.outcome.results[0].record
    object_store.fail_remove = True

    with pytest.raises(MinioError):
        await fake_client.delete_file(record)
    assert record.id in metadata_store.rows


async def test_delete_after_object_fault_is_retried_to_completion(fake_client, object_store, metadata_store):
    """The row outlives a failed object delete; a later delete removes both."""
    # --- ARRANGE ---
    report = await fake_client.upload([make_file("notes.txt", 5)])
    record = report.outcome.results[0].record
    object_store.fail_remove = True

    # --- ACT ---
    with pytest.raises(MinioError):
        await fake_client.delete_file(record)
    listed_after_fault = [r.id for r in await fake_client.list_files()]
    object_store.fail_remove = False
    deleted = await fake_client.delete_file(record)

    # --- ASSERT ---
    assert listed_after_fault == [record.id]
    assert object_store.calls[-1] == ("remove", record.file_path)
    assert deleted is True
    assert record.file_path not in object_store.objects
    assert await metadata_store.get(record.id) is None
    assert await fake_client.list_files() == []


async def test_delete_by_missing_id_raises(fake_client):
    with pytest.raises(FileRecordNotFoundError):
        await fake_client.delete_file_by_id(uuid4())


async def test_check_connections_and_probe(fake_client, object_store):
    assert await fake_client.check_connections() == {"postgres": "ok", "minio": "ok"}
    assert await fake_client.probe() is True

    object_store.has_bucket = False

    statuses = await fake_client.check_connections()
    assert statuses["minio"].startswith("failed:")
    assert await fake_client.probe() is False


async def test_storage_status(fake_client, object_store):
    assert await fake_client.storage_status() == {"bucket": True, "table": True}

    object_store.has_bucket = False

    assert await fake_client.storage_status() == {"bucket": False, "table": True}
