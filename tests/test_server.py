from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from starlette.datastructures import UploadFile

from fileshare_client.config import AuthConfig, Settings, UploadConfig
from fileshare_client.exceptions import DatabaseError
from fileshare_client.server.auth import InMemoryAttemptStore, LoginGuard
from fileshare_client.server.main import create_app

AUTH = AuthConfig(admin_username="root", admin_password="s3cret", secret_key="test-key")


@pytest.fixture
def http(fake_client):
    app = create_app(
        client=fake_client,
        guard=LoginGuard(InMemoryAttemptStore(), AUTH),
        settings=Settings(auth=AUTH),
        monitor=False,
    )
    with TestClient(app) as c:
        yield c


def _login(http: TestClient):
    res = http.post("/auth/login", data={"username": "root", "password": "s3cret"})
    assert res.status_code == 200
    return res


def _upload(http: TestClient, *files):
    return http.post("/files/upload", files=[("files", f) for f in files])


def test_health(http):
    res = http.get("/health")

    assert res.status_code == 200
    assert res.json() == {"postgres": "ok", "minio": "ok", "reachable": "ok"}


def test_login_sets_session_cookie(http):
    res = _login(http)

    assert AUTH.cookie_name in res.cookies
    assert "httponly" in res.headers["set-cookie"].lower()


def test_bad_login_is_401(http):
    res = http.post("/auth/login", data={"username": "root", "password": "nope"})

    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid username or password"


def test_locked_login_is_429_with_retry_after(http):
    for _ in range(5):
        http.post("/auth/login", data={"username": "root", "password": "nope"})

    res = http.post("/auth/login", data={"username": "root", "password": "s3cret"})

    assert res.status_code == 429
    assert int(res.headers["retry-after"]) > 0


def test_upload_requires_admin(http, object_store):
    res = _upload(http, ("a.txt", b"hello", "text/plain"))

    assert res.status_code == 401
    assert object_store.calls == []


def test_upload_then_list(http):
    # --- ARRANGE ---
    _login(http)

    # --- ACT ---
    res = _upload(
        http,
        ("report.pdf", b"%PDF-1.4", "application/pdf"),
        ("photo.jpg", b"\xff\xd8\xff", "image/jpeg"),
    )

    # --- ASSERT ---
    assert res.status_code == 200
    report = res.json()
    assert report["summary"]["succeeded"] == 2
    assert [n["title"] for n in report["notifications"]] == ["Upload Successful"]

    listing = http.get("/files").json()
    assert {f["name"] for f in listing} == {"report.pdf", "photo.jpg"}
    pdf = next(f for f in listing if f["name"] == "report.pdf")
    assert pdf["size"] == 8
    assert pdf["type"] == "application/pdf"
    assert http.get(f"/files/{pdf['id']}").json()["file_path"] == pdf["file_path"]


def test_rejected_files_come_back_in_the_report(http, object_store):
    _login(http)

    res = _upload(http, ("tool.exe", b"MZ", "application/octet-stream"))

    assert res.status_code == 200
    body = res.json()
    assert body["summary"]["rejected"][0]["reasons"] == ["format"]
    assert body["notifications"][0]["title"] == "Unsupported File Format"
    assert object_store.calls == []


def test_upload_when_offline_is_503(http, gate):
    _login(http)
    gate.set_reachable(False)

    res = _upload(http, ("a.txt", b"hello", "text/plain"))

    assert res.status_code == 503


def test_upload_without_bucket_is_503(http, object_store):
    _login(http)
    object_store.has_bucket = False

    res = _upload(http, ("a.txt", b"hello", "text/plain"))

    assert res.status_code == 503


def test_delete_twice(http):
    _login(http)
    _upload(http, ("a.txt", b"hello", "text/plain"))
    file_id = http.get("/files").json()[0]["id"]

    first = http.delete(f"/files/{file_id}")
    second = http.delete(f"/files/{file_id}")

    assert first.status_code == 200
    assert second.status_code == 404
    assert http.get("/files").json() == []


def test_delete_failure_is_502_and_row_survives(http, object_store):
    _login(http)
    _upload(http, ("a.txt", b"hello", "text/plain"))
    file_id = http.get("/files").json()[0]["id"]
    object_store.fail_remove = True

    res = http.delete(f"/files/{file_id}")

    assert res.status_code == 502
    assert len(http.get("/files").json()) == 1


def test_get_unknown_file_is_404(http):
    assert http.get(f"/files/{uuid4()}").status_code == 404


def test_logout_drops_the_session(http):
    _login(http)
    http.post("/auth/logout")

    res = http.delete(f"/files/{uuid4()}")

    assert res.status_code == 401


class _UnavailableAttemptStore(InMemoryAttemptStore):
    async def get(self, client_key, now):
        raise DatabaseError("connection refused")


def test_login_with_attempt_store_down_is_503(fake_client):
    app = create_app(
        client=fake_client,
        guard=LoginGuard(_UnavailableAttemptStore(), AUTH),
        settings=Settings(auth=AUTH),
        monitor=False,
    )

    with TestClient(app) as http:
        res = http.post("/auth/login", data={"username": "root", "password": "s3cret"})

    assert res.status_code == 503
    assert AUTH.cookie_name not in res.cookies


def test_oversized_part_is_rejected_without_reading_it(http, fake_client, monkeypatch):
    # --- ARRANGE ---
    _login(http)
    fake_client.upload_config = UploadConfig(max_file_size=4)
    read_names = []
    real_read = UploadFile.read

    async def recording_read(self, *args, **kwargs):
        read_names.append(self.filename)
        return await real_read(self, *args, **kwargs)
    monkeypatch.setattr(UploadFile, "read", recording_read)

    # --- ACT ---
    res = _upload(http, ("big.txt", b"0123456789", "text/plain"), ("ok.txt", b"hi", "text/plain"))

    # --- ASSERT ---
    assert res.status_code == 200
    assert read_names == ["ok.txt"]
    body = res.json()
    assert [(r["name"], r["size"], r["reasons"]) for r in body["summary"]["rejected"]] == [("big.txt", 10, ["size"])]
    assert body["summary"]["succeeded"] == 1
