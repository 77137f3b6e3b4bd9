"""Integration tests for the record endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch

from labfiles.config import Settings
from labfiles.exceptions import StoreOperationError
from labfiles.services.record_store import RecordStore
from tests.conftest import create_test_client, hours_ago, write_file

if TYPE_CHECKING:
    from pathlib import Path

    from httpx import AsyncClient


async def _create(client: AsyncClient, **fields: object) -> dict:
    resp = await client.post("/api/records", json={"title": "Record", **fields})
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestRecordCrud:
    async def test_create_and_get(self, client: AsyncClient) -> None:
        created = await _create(
            client, title="Wafer map", description="batch 4", relative_path="test/map.csv"
        )

        assert created["status"] == "active"
        assert created["is_active"] is True
        assert created["created_at"].endswith(("+00:00", "Z"))

        resp = await client.get(f"/api/records/{created['id']}")
        assert resp.status_code == 200
        assert resp.json()["title"] == "Wafer map"

    async def test_get_missing_is_404(self, client: AsyncClient) -> None:
        resp = await client.get("/api/records/9999")
        assert resp.status_code == 404

    async def test_create_rejects_unknown_status(self, client: AsyncClient) -> None:
        resp = await client.post("/api/records", json={"title": "x", "status": "lost"})
        assert resp.status_code == 422

    async def test_create_rejects_traversal_path(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/records", json={"title": "x", "relative_path": "test/../../etc"}
        )
        assert resp.status_code == 422

    async def test_duplicate_active_path_conflicts(self, client: AsyncClient) -> None:
        await _create(client, relative_path="test/a.txt")

        resp = await client.post(
            "/api/records", json={"title": "again", "relative_path": "test/a.txt"}
        )

        assert resp.status_code == 409

    async def test_other_store_failures_are_server_errors(self, client: AsyncClient) -> None:
        with patch.object(
            RecordStore, "create", side_effect=StoreOperationError("database is locked")
        ):
            resp = await client.post("/api/records", json={"title": "x"})

        assert resp.status_code == 500
        assert resp.json() == {"detail": "Database operation failed"}

    async def test_update_partial(self, client: AsyncClient) -> None:
        created = await _create(client, description="keep me")

        resp = await client.put(
            f"/api/records/{created['id']}", json={"title": "Renamed", "status": "archived"}
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["title"] == "Renamed"
        assert body["status"] == "archived"
        assert body["description"] == "keep me"

    async def test_update_missing_is_404(self, client: AsyncClient) -> None:
        resp = await client.put("/api/records/9999", json={"title": "x"})
        assert resp.status_code == 404

    async def test_delete_hides_from_listing(self, client: AsyncClient) -> None:
        kept = await _create(client, title="kept")
        gone = await _create(client, title="gone")

        resp = await client.delete(f"/api/records/{gone['id']}")
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False

        listing = await client.get("/api/records")
        assert [r["id"] for r in listing.json()] == [kept["id"]]
        # Still retrievable by id.
        assert (await client.get(f"/api/records/{gone['id']}")).status_code == 200

    async def test_delete_missing_is_404(self, client: AsyncClient) -> None:
        resp = await client.delete("/api/records/9999")
        assert resp.status_code == 404


class TestFileAccess:
    async def test_file_info(self, client: AsyncClient, raw_dir: Path) -> None:
        write_file(raw_dir, "scan.csv", "a,b\n", mtime=hours_ago(1))
        created = await _create(client, relative_path="test/scan.csv")

        resp = await client.get(f"/api/records/{created['id']}/file-info")

        assert resp.status_code == 200
        body = resp.json()
        assert body["relative_path"] == "test/scan.csv"
        assert body["size"] == 4
        assert body["content_type"] == "text/csv"

    async def test_file_info_missing_file(self, client: AsyncClient) -> None:
        created = await _create(client, relative_path="test/nothing.csv")
        resp = await client.get(f"/api/records/{created['id']}/file-info")
        assert resp.status_code == 404

    async def test_download_uses_record_title(self, client: AsyncClient, raw_dir: Path) -> None:
        write_file(raw_dir, "raw_0001.bin", "0123456789")
        created = await _create(client, title="trace.bin", relative_path="test/raw_0001.bin")

        resp = await client.get(f"/api/records/{created['id']}/download")

        assert resp.status_code == 200
        assert resp.content == b"0123456789"
        assert "attachment" in resp.headers["content-disposition"]
        assert "trace.bin" in resp.headers["content-disposition"]
        assert resp.headers["cache-control"] == "no-cache"

    async def test_stream_supports_range(self, client: AsyncClient, raw_dir: Path) -> None:
        write_file(raw_dir, "clip.txt", "0123456789")
        created = await _create(client, relative_path="test/clip.txt")

        full = await client.get(f"/api/records/{created['id']}/stream")
        assert full.status_code == 200
        assert full.headers["accept-ranges"] == "bytes"
        assert "max-age=31536000" in full.headers["cache-control"]

        partial = await client.get(
            f"/api/records/{created['id']}/stream", headers={"Range": "bytes=2-5"}
        )
        assert partial.status_code == 206
        assert partial.content == b"2345"
        assert partial.headers["content-range"] == "bytes 2-5/10"

    async def test_stream_missing_file(self, client: AsyncClient) -> None:
        created = await _create(client, relative_path="test/none.bin")
        resp = await client.get(f"/api/records/{created['id']}/stream")
        assert resp.status_code == 404


class TestPreview:
    async def test_preview_info(self, client: AsyncClient, raw_dir: Path) -> None:
        write_file(raw_dir, "scan.csv", "a,b\n1,2\n", mtime=hours_ago(1))
        created = await _create(
            client, title="Scan", description="wafer 3", relative_path="test/scan.csv"
        )

        resp = await client.get(f"/api/records/{created['id']}/preview")

        assert resp.status_code == 200
        body = resp.json()
        assert body["file_name"] == "Scan"
        assert body["description"] == "wafer 3"
        assert body["extension"] == "csv"
        assert body["kind"] == "text"
        assert body["is_previewable"] is True
        assert body["size"] == 8

    async def test_unknown_type_is_not_previewable(
        self, client: AsyncClient, raw_dir: Path
    ) -> None:
        write_file(raw_dir, "dump.bin", "\x00\x01")
        created = await _create(client, relative_path="test/dump.bin")

        info = await client.get(f"/api/records/{created['id']}/preview")
        content = await client.get(f"/api/records/{created['id']}/preview/content")

        assert info.json()["kind"] == "unknown"
        assert info.json()["is_previewable"] is False
        assert content.status_code == 400
        assert content.json() == {"detail": "Preview not supported for this file type"}

    async def test_text_content(self, client: AsyncClient, raw_dir: Path) -> None:
        write_file(raw_dir, "log.txt", "line one\nline two\n")
        created = await _create(client, relative_path="test/log.txt")

        resp = await client.get(f"/api/records/{created['id']}/preview/content")

        assert resp.status_code == 200
        body = resp.json()
        assert body["kind"] == "text"
        assert body["content"] == "line one\nline two\n"
        assert body["lines"] == 2
        assert body["encoding"] == "utf-8"
        assert body["truncated"] is False

    async def test_image_content_is_inlined(self, client: AsyncClient, raw_dir: Path) -> None:
        write_file(raw_dir, "chip.png", "png")
        created = await _create(client, relative_path="test/chip.png")

        resp = await client.get(f"/api/records/{created['id']}/preview/content")

        body = resp.json()
        assert body["kind"] == "image"
        assert body["data_url"] == "data:image/png;base64,cG5n"
        assert body["url"] is None

    async def test_video_content_points_at_stream(
        self, client: AsyncClient, raw_dir: Path
    ) -> None:
        write_file(raw_dir, "run.mp4", "frames")
        created = await _create(client, relative_path="test/run.mp4")

        resp = await client.get(f"/api/records/{created['id']}/preview/content")

        body = resp.json()
        assert body["kind"] == "video"
        assert body["url"] == f"/api/records/{created['id']}/stream"
        assert body["data_url"] is None

    async def test_missing_file(self, client: AsyncClient) -> None:
        created = await _create(client, relative_path="test/gone.txt")

        info = await client.get(f"/api/records/{created['id']}/preview")
        content = await client.get(f"/api/records/{created['id']}/preview/content")

        assert info.status_code == 404
        assert content.status_code == 404


class TestDownloadManifest:
    async def test_lists_files_and_missing_records(
        self, client: AsyncClient, raw_dir: Path
    ) -> None:
        write_file(raw_dir, "a.csv", "1234")
        write_file(raw_dir, "b.txt", "123456")
        a = await _create(client, title="A", relative_path="test/a.csv")
        b = await _create(client, title="B", relative_path="test/b.txt")
        lost = await _create(client, title="Lost", relative_path="test/lost.txt")

        resp = await client.post(
            "/api/records/download-manifest",
            json={"record_ids": [a["id"], b["id"], lost["id"], a["id"], 9999]},
        )

        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert [f["name"] for f in body["files"]] == ["A", "B"]
        assert body["files"][0]["download_url"] == f"/api/records/{a['id']}/download"
        assert body["files"][0]["content_type"] == "text/csv"
        assert body["total_size"] == 10
        assert body["is_single_file"] is False
        assert body["missing_files"] == ["Lost"]

    async def test_single_file(self, client: AsyncClient, raw_dir: Path) -> None:
        write_file(raw_dir, "a.csv", "1234")
        a = await _create(client, relative_path="test/a.csv")

        resp = await client.post("/api/records/download-manifest", json={"record_ids": [a["id"]]})

        assert resp.json()["is_single_file"] is True

    async def test_inactive_records_are_not_valid(self, client: AsyncClient) -> None:
        created = await _create(client)
        await client.delete(f"/api/records/{created['id']}")

        resp = await client.post(
            "/api/records/download-manifest", json={"record_ids": [created["id"], 9999]}
        )

        assert resp.status_code == 404
        assert resp.json() == {"detail": "No valid records found"}

    async def test_no_readable_files(self, client: AsyncClient) -> None:
        created = await _create(client, relative_path="test/missing.bin")

        resp = await client.post(
            "/api/records/download-manifest", json={"record_ids": [created["id"]]}
        )

        assert resp.status_code == 404
        assert resp.json() == {"detail": "No files could be downloaded"}

    async def test_ids_required(self, client: AsyncClient) -> None:
        resp = await client.post("/api/records/download-manifest", json={"record_ids": []})
        assert resp.status_code == 422


class TestUploads:
    async def test_upload_single(self, client: AsyncClient, raw_dir: Path) -> None:
        resp = await client.post(
            "/api/records/upload",
            files={"file": ("trace.csv", b"1,2,3", "text/csv")},
            data={"title": "Trace", "description": "first run"},
        )

        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["file_size"] == 5
        assert body["file_type"] == "text/csv"
        assert body["record"]["title"] == "Trace"
        assert body["record"]["relative_path"] == f"test/{body['file_name']}"
        assert (raw_dir / body["file_name"]).read_bytes() == b"1,2,3"

    async def test_uploaded_file_is_unchanged_on_next_sync(
        self, client: AsyncClient, raw_dir: Path
    ) -> None:
        _ = raw_dir
        await client.post(
            "/api/records/upload", files={"file": ("a.txt", b"x", "text/plain")}
        )

        resp = await client.post("/api/sync/full")

        summary = resp.json()["summary"]
        assert summary["created"] == 0
        assert summary["unchanged"] == 1

    async def test_upload_too_large(self, test_settings: Settings) -> None:
        settings = test_settings.model_copy(update={"max_upload_size": 4})
        async with create_test_client(settings) as client:
            resp = await client.post(
                "/api/records/upload", files={"file": ("big.bin", b"12345", "application/x")}
            )
        assert resp.status_code == 413

    async def test_upload_multiple(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/records/upload-multiple",
            files=[
                ("files", ("a.txt", b"a", "text/plain")),
                ("files", ("b.txt", b"bb", "text/plain")),
            ],
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["summary"] == {"total": 2, "successful": 2, "failed": 0}
        assert [r["original_name"] for r in body["results"]] == ["a.txt", "b.txt"]
        listing = await client.get("/api/records")
        assert len(listing.json()) == 2

    async def test_upload_multiple_reports_per_file_failures(
        self, test_settings: Settings
    ) -> None:
        settings = test_settings.model_copy(update={"max_upload_size": 1})
        async with create_test_client(settings) as client:
            resp = await client.post(
                "/api/records/upload-multiple",
                files=[
                    ("files", ("ok.txt", b"a", "text/plain")),
                    ("files", ("big.txt", b"bbb", "text/plain")),
                ],
            )

        body = resp.json()
        assert body["summary"] == {"total": 2, "successful": 1, "failed": 1}
        assert body["results"][1]["success"] is False
        assert body["results"][1]["error"] == "Failed to upload big.txt"
