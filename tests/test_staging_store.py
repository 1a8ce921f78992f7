"""Tests for the filesystem staging store."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from account_mapper.core.errors import StagingError
from account_mapper.staging import StagingStore


async def _read_all(store: StagingStore, path: Path) -> bytes:
    return b"".join([chunk async for chunk in store.read_stream(path)])


@pytest.mark.asyncio
async def test_write_then_stream_in_chunks(tmp_path: Path) -> None:
    store = StagingStore(tmp_path, chunk_size=4)
    path = store.new_path()

    await store.write(path, b"0123456789")

    chunks = [chunk async for chunk in store.read_stream(path)]
    assert chunks == [b"0123", b"4567", b"89"]
    assert not path.with_name(path.name + ".tmp").exists()


@pytest.mark.asyncio
async def test_write_overwrites_existing_body(tmp_path: Path) -> None:
    store = StagingStore(tmp_path)
    path = store.new_path()
    await store.write(path, b"first")

    await store.write(path, b"second")

    assert await _read_all(store, path) == b"second"


@pytest.mark.asyncio
async def test_mark_error_leaves_original_untouched(tmp_path: Path) -> None:
    store = StagingStore(tmp_path)
    path = await store.write(store.new_path(), b"body")

    marker = await store.mark_error(path, {"alias_id": "abc", "raw_address": "abc@x"})

    assert marker == tmp_path / f"{path.name}.error"
    assert json.loads(marker.read_text(encoding="utf-8")) == {
        "alias_id": "abc",
        "raw_address": "abc@x",
    }
    assert "\n  " in marker.read_text(encoding="utf-8")
    assert path.read_bytes() == b"body"
    assert store.is_quarantined(path)
    assert await store.read_marker(path) == {"alias_id": "abc", "raw_address": "abc@x"}


@pytest.mark.asyncio
async def test_remove_and_clear_error(tmp_path: Path) -> None:
    store = StagingStore(tmp_path)
    path = await store.write(store.new_path(), b"body")
    await store.mark_error(path, {"alias_id": "abc"})

    await store.clear_error(path)
    await store.remove(path)
    await store.remove(path)

    assert not path.exists()
    assert not store.is_quarantined(path)


def test_pending_and_quarantined_listing(tmp_path: Path) -> None:
    store = StagingStore(tmp_path)
    staged = store.new_path()
    staged.write_bytes(b"a")
    broken = store.new_path()
    broken.write_bytes(b"b")
    store.error_path(broken).write_text("{}", encoding="utf-8")
    (tmp_path / "unrelated.txt").write_text("ignore me", encoding="utf-8")

    assert store.pending() == [staged]
    assert store.quarantined() == [broken]


def test_listing_missing_directory_is_empty(tmp_path: Path) -> None:
    store = StagingStore(tmp_path / "absent")

    assert store.pending() == []
    assert store.quarantined() == []


@pytest.mark.asyncio
async def test_read_missing_file_raises_staging_error(tmp_path: Path) -> None:
    store = StagingStore(tmp_path)

    with pytest.raises(StagingError):
        await _read_all(store, tmp_path / ("0" * 32))


@pytest.mark.asyncio
async def test_write_into_missing_directory_raises_staging_error(tmp_path: Path) -> None:
    store = StagingStore(tmp_path / "absent")

    with pytest.raises(StagingError):
        await store.write(store.new_path(), b"body")


@pytest.mark.asyncio
async def test_invalid_marker_raises_staging_error(tmp_path: Path) -> None:
    store = StagingStore(tmp_path)
    path = await store.write(store.new_path(), b"body")
    store.error_path(path).write_text("not json", encoding="utf-8")

    with pytest.raises(StagingError):
        await store.read_marker(path)


def test_ensure_directory_creates_tmpdir(tmp_path: Path) -> None:
    store = StagingStore(tmp_path / "nested" / "staging")

    store.ensure_directory()

    assert store.tmpdir.is_dir()
