"""
Unit tests -- local object store.
"""
import pytest

from datachat.storage.object_store import LocalObjectStore, StorageError


@pytest.fixture
def store(tmp_path):
    return LocalObjectStore(tmp_path, "datasets")


def test_upload_download_exists(store):
    assert store.upload("ds1/sales.csv", b"a,b\n1,2\n") == "ds1/sales.csv"
    assert store.exists("ds1/sales.csv")
    assert store.download("ds1/sales.csv") == b"a,b\n1,2\n"


def test_download_missing(store):
    with pytest.raises(StorageError, match="not found"):
        store.download("ds1/none.csv")


@pytest.mark.parametrize("path", ["", "/etc/passwd", "../outside.csv", "ds1/../../outside.csv"])
def test_rejects_paths_outside_bucket(store, path):
    with pytest.raises(StorageError):
        store.upload(path, b"x")


def test_delete_removes_empty_folder(store):
    store.upload("ds1/sales.csv", b"x")
    assert store.delete("ds1/sales.csv") is True
    assert not store.exists("ds1/sales.csv")
    assert not (store.base / "ds1").exists()
    assert store.delete("ds1/sales.csv") is False
