"""Tests for the image blob store."""
import os
import time

import pytest

from core.exceptions import InvalidPathError, NotFoundError
from services.blob_store import BlobStore, content_type_for


@pytest.fixture
def store(tmp_path):
    return BlobStore(tmp_path / "uploads")


def test_save_read_delete(store):
    name = store.save("abc", b"jpeg-bytes", "jpg")
    assert name == "abc.jpg"
    assert store.read(name) == b"jpeg-bytes"
    assert store.delete(name) is True
    with pytest.raises(NotFoundError):
        store.read(name)


def test_save_leaves_no_temp_files(store):
    store.save("abc", b"data")
    assert [p.name for p in store.root.iterdir()] == ["abc.jpg"]


def test_delete_missing_blob_is_tolerated(store):
    store.ensure_root()
    assert store.delete("missing.jpg") is False


@pytest.mark.parametrize("path", ["../secret.txt", "../../etc/passwd", "a/../../secret.txt", ""])
def test_paths_outside_root_are_rejected(store, tmp_path, path):
    (tmp_path / "secret.txt").write_text("top secret")
    with pytest.raises(InvalidPathError) as exc_info:
        store.read(path)
    assert exc_info.value.status_code == 400


def test_nested_path_inside_root_is_allowed(store):
    (store.root / "2024").mkdir(parents=True)
    (store.root / "2024" / "x.png").write_bytes(b"png")
    assert store.read("2024/../2024/x.png") == b"png"


def age(store, name, seconds):
    stamp = time.time() - seconds
    os.utime(store.resolve(name), (stamp, stamp))


def test_collect_orphans_keeps_known_blobs(store):
    store.save("kept", b"1")
    store.save("orphan", b"2")
    removed = store.collect_orphans(["kept"], min_age=0)
    assert removed == ["orphan.jpg"]
    assert store.exists("kept.jpg")
    assert not store.exists("orphan.jpg")


def test_fresh_orphan_survives_collection(store):
    store.save("in-flight", b"1")
    assert store.find_orphans([]) == []
    assert store.collect_orphans([]) == []
    assert store.exists("in-flight.jpg")


def test_orphan_older_than_min_age_is_collected(store):
    store.save("fresh", b"1")
    store.save("stale", b"2")
    age(store, "stale.jpg", 7200)
    assert [p.name for p in store.find_orphans([], min_age=3600)] == ["stale.jpg"]
    assert store.collect_orphans([], min_age=3600) == ["stale.jpg"]
    assert store.exists("fresh.jpg")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("a.png", "image/png"),
        ("a.GIF", "image/gif"),
        ("a.webp", "image/webp"),
        ("a.heic", "image/heic"),
        ("a.jpg", "image/jpeg"),
        ("a.bmp", "image/jpeg"),
        ("noext", "image/jpeg"),
    ],
)
def test_content_type_for(name, expected):
    assert content_type_for(name) == expected
