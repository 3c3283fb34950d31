"""Tests for file listing, lookup and deletion."""

import asyncio
from datetime import datetime, timezone

import pytest
from pytest_httpx import HTTPXMock

from vlibestorage import (
    DELETE_BATCH_SIZE,
    ApiError,
    ListOptions,
    TransportError,
    VlibeStorage,
)

API = "https://vlibe.app/api"


def file_json(file_id: str = "file_1", **overrides) -> dict:
    """File record as the API returns it."""
    data = {
        "id": file_id,
        "key": f"vlibe-storage/private/{file_id}.png",
        "filename": f"{file_id}.png",
        "size": 1024,
        "mimeType": "image/png",
        "isPublic": False,
        "folder": None,
        "createdAt": "2026-01-15T10:30:00Z",
    }
    data.update(overrides)
    return data


class TestList:
    """Test VlibeStorage.list."""

    @pytest.mark.asyncio
    async def test_list_without_options(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{API}/storage",
            json={
                "success": True,
                "data": {"files": [file_json()], "total": 1, "hasMore": False},
            },
        )

        result = await storage.list()

        assert result.total == 1
        assert result.has_more is False
        assert result.files[0].id == "file_1"
        assert result.files[0].created_at == datetime(
            2026, 1, 15, 10, 30, tzinfo=timezone.utc
        )

    @pytest.mark.asyncio
    async def test_list_builds_query(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{API}/storage?folder=avatars&limit=20&offset=40",
            json={
                "success": True,
                "data": {"files": [], "total": 40, "hasMore": False},
            },
        )

        result = await storage.list(ListOptions(folder="avatars", limit=20, offset=40))

        assert result.files == []

    @pytest.mark.asyncio
    async def test_list_omits_zero_offset(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{API}/storage?limit=50",
            json={"success": True, "data": {"files": [], "total": 0}},
        )

        await storage.list(ListOptions(limit=50, offset=0))

        assert httpx_mock.get_request().url.params.get("offset") is None

    @pytest.mark.asyncio
    async def test_list_failure_raises(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{API}/storage",
            status_code=401,
            json={"success": False, "error": "Unauthorized"},
        )

        with pytest.raises(ApiError, match="Unauthorized"):
            await storage.list()


class TestGet:
    """Test VlibeStorage.get."""

    @pytest.mark.asyncio
    async def test_get_returns_file(self, storage: VlibeStorage, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="GET",
            url=f"{API}/storage/file_1",
            json={"success": True, "data": file_json(folder="avatars")},
        )

        file = await storage.get("file_1")

        assert file is not None
        assert file.mime_type == "image/png"
        assert file.folder == "avatars"

    @pytest.mark.asyncio
    async def test_get_not_found_returns_none(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{API}/storage/missing",
            json={"success": False, "error": "file not found"},
        )

        assert await storage.get("missing") is None

    @pytest.mark.asyncio
    async def test_get_not_found_on_404_returns_none(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{API}/storage/missing",
            status_code=404,
            json={"success": False, "error": "File not found"},
        )

        assert await storage.get("missing") is None

    @pytest.mark.asyncio
    async def test_get_other_error_raises(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{API}/storage/file_1",
            json={"success": False, "error": "forbidden"},
        )

        with pytest.raises(ApiError, match="forbidden"):
            await storage.get("file_1")

    @pytest.mark.asyncio
    async def test_get_synthesized_404_raises(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        # Only the error text counts, not the status code
        httpx_mock.add_response(
            method="GET", url=f"{API}/storage/file_1", status_code=404, json={}
        )

        with pytest.raises(ApiError, match="HTTP 404: Not Found"):
            await storage.get("file_1")


class TestGetDownloadUrl:
    """Test VlibeStorage.get_download_url."""

    @pytest.mark.asyncio
    async def test_download_url_with_expiry(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{API}/storage/file_1?download=true&expiresIn=600",
            json={
                "success": True,
                "data": {"url": "https://signed.example/file_1", "expiresIn": 600},
            },
        )

        url = await storage.get_download_url("file_1", expires_in=600)

        assert url == "https://signed.example/file_1"

    @pytest.mark.asyncio
    async def test_download_url_failure(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{API}/storage/file_1?download=true",
            json={"success": False},
        )

        with pytest.raises(ApiError, match="Failed to get download URL"):
            await storage.get_download_url("file_1")


class TestDelete:
    """Test VlibeStorage.delete."""

    @pytest.mark.asyncio
    async def test_delete_success(self, storage: VlibeStorage, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="DELETE", url=f"{API}/storage/file_1", json={"success": True}
        )

        assert await storage.delete("file_1") is True

    @pytest.mark.asyncio
    async def test_delete_not_found_returns_false(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="DELETE",
            url=f"{API}/storage/file_1",
            json={"success": False, "error": "file not found"},
        )

        assert await storage.delete("file_1") is False

    @pytest.mark.asyncio
    async def test_delete_other_error_raises(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="DELETE",
            url=f"{API}/storage/file_1",
            json={"success": False, "error": "forbidden"},
        )

        with pytest.raises(ApiError, match="forbidden"):
            await storage.delete("file_1")


class TestDeleteMany:
    """Test batched bulk delete."""

    @pytest.mark.asyncio
    async def test_partitions_every_id(
        self, storage: VlibeStorage, httpx_mock: HTTPXMock
    ):
        file_ids = [f"file_{i}" for i in range(25)]
        for i, file_id in enumerate(file_ids):
            if i % 5 == 0:
                body = {"success": False, "error": "file not found"}
            elif i % 7 == 0:
                body = {"success": False, "error": "forbidden"}
            else:
                body = {"success": True}
            httpx_mock.add_response(
                method="DELETE", url=f"{API}/storage/{file_id}", json=body
            )

        result = await storage.delete_many(file_ids)

        assert len(result.deleted) + len(result.failed) == len(file_ids)
        assert set(result.deleted) | set(result.failed) == set(file_ids)
        assert result.failed == [
            "file_0", "file_5", "file_7", "file_10", "file_14", "file_15", "file_20",
            "file_21",
        ]
        assert result.deleted == [f for f in file_ids if f not in result.failed]

    @pytest.mark.asyncio
    async def test_transport_failure_counts_as_failed(
        self, storage: VlibeStorage, monkeypatch: pytest.MonkeyPatch
    ):
        async def fake_delete(file_id: str) -> bool:
            if file_id == "b":
                raise TransportError("Request failed: reset")
            return True

        monkeypatch.setattr(storage, "delete", fake_delete)

        result = await storage.delete_many(["a", "b", "c"])

        assert result.deleted == ["a", "c"]
        assert result.failed == ["b"]

    @pytest.mark.asyncio
    async def test_batches_settle_before_next_dispatch(
        self, storage: VlibeStorage, monkeypatch: pytest.MonkeyPatch
    ):
        events: list[tuple[str, str]] = []

        async def fake_delete(file_id: str) -> bool:
            events.append(("start", file_id))
            # Stagger completions so batches would interleave without a join
            await asyncio.sleep(0.001 * (int(file_id) % 4))
            events.append(("end", file_id))
            if file_id == "3":
                raise ApiError("forbidden")
            return True

        monkeypatch.setattr(storage, "delete", fake_delete)
        file_ids = [str(i) for i in range(25)]

        result = await storage.delete_many(file_ids)

        batches = [
            file_ids[i : i + DELETE_BATCH_SIZE]
            for i in range(0, len(file_ids), DELETE_BATCH_SIZE)
        ]
        assert len(batches) == 3

        position = {event: index for index, event in enumerate(events)}
        for previous, current in zip(batches, batches[1:]):
            last_end = max(position[("end", f)] for f in previous)
            first_start = min(position[("start", f)] for f in current)
            assert last_end < first_start

        assert result.failed == ["3"]
        assert len(result.deleted) == 24

    @pytest.mark.asyncio
    async def test_batch_runs_concurrently(
        self, storage: VlibeStorage, monkeypatch: pytest.MonkeyPatch
    ):
        in_flight = 0
        peak = 0

        async def fake_delete(file_id: str) -> bool:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1
            return True

        monkeypatch.setattr(storage, "delete", fake_delete)

        await storage.delete_many([str(i) for i in range(25)])

        assert peak == DELETE_BATCH_SIZE

    @pytest.mark.asyncio
    async def test_empty_input(self, storage: VlibeStorage):
        result = await storage.delete_many([])

        assert result.deleted == []
        assert result.failed == []
