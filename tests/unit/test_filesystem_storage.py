"""Unit tests for the filesystem storage backend."""

from __future__ import annotations

import os
import stat

import pytest

from attache.pipeline.errors import OptionsError, StorageError
from attache.storage import FileSystemStorage, Storage, get_storage
from attache.storage.filesystem import parse_acl


def mode_of(path: str) -> int:
    return stat.S_IMODE(os.stat(path).st_mode)


@pytest.fixture
def storage() -> FileSystemStorage:
    return FileSystemStorage()


class TestParseAcl:
    """Test suite for parse_acl."""

    @pytest.mark.parametrize(
        ("acl", "expected"),
        [
            ("0600", 0o600),
            ("644", 0o644),
            (0o640, 0o640),
            ("rw-r--r--", None),
            (True, None),
            (None, None),
        ],
    )
    def test_parse(self, acl, expected) -> None:
        assert parse_acl(acl) == expected


class TestFileSystemStorage:
    """Test suite for FileSystemStorage."""

    def test_save_creates_directories(self, storage, storage_path: str, source_file: str) -> None:
        storage.save("path/to", "coffee.jpg", source_file, {"path": storage_path})

        saved = os.path.join(storage_path, "path", "to", "coffee.jpg")
        with open(saved, "rb") as fh, open(source_file, "rb") as src:
            assert fh.read() == src.read()

    def test_save_applies_octal_string_acl(self, storage, storage_path: str, source_file: str) -> None:
        storage.save("", "coffee.jpg", source_file, {"path": storage_path, "acl": "0600"})
        assert mode_of(os.path.join(storage_path, "coffee.jpg")) == 0o600

    def test_save_applies_integer_acl(self, storage, storage_path: str, source_file: str) -> None:
        storage.save("", "coffee.jpg", source_file, {"path": storage_path, "acl": 0o640})
        assert mode_of(os.path.join(storage_path, "coffee.jpg")) == 0o640

    def test_unparsable_acl_is_ignored(self, storage, storage_path: str, source_file: str) -> None:
        storage.save("", "coffee.jpg", source_file, {"path": storage_path, "acl": "public-read"})
        assert os.path.isfile(os.path.join(storage_path, "coffee.jpg"))

    def test_path_option_is_required(self, storage, source_file: str) -> None:
        with pytest.raises(StorageError) as exc_info:
            storage.save("", "coffee.jpg", source_file, {})
        assert exc_info.value.operation == "save"

    def test_empty_path_option_is_missing(self, storage, source_file: str) -> None:
        with pytest.raises(StorageError):
            storage.save("", "coffee.jpg", source_file, {"path": ""})

    def test_leading_slash_stays_under_path(self, storage, storage_path: str, source_file: str) -> None:
        storage.save("/42", "/coffee.jpg", source_file, {"path": storage_path})

        assert os.path.isfile(os.path.join(storage_path, "42", "coffee.jpg"))
        assert not os.path.exists("/42/coffee.jpg")

    @pytest.mark.parametrize(
        ("directory", "filename"),
        [("..", "coffee.jpg"), ("42/../..", "coffee.jpg"), ("", "../coffee.jpg"), ("", "")],
    )
    def test_paths_outside_base_are_rejected(
        self, storage, storage_path: str, source_file: str, directory, filename
    ) -> None:
        with pytest.raises(StorageError) as exc_info:
            storage.save(directory, filename, source_file, {"path": storage_path})

        assert exc_info.value.operation == "save"
        assert not os.path.exists(os.path.join(os.path.dirname(storage_path), "coffee.jpg"))

    def test_save_missing_source(self, storage, storage_path: str) -> None:
        with pytest.raises(StorageError):
            storage.save("", "coffee.jpg", os.path.join(storage_path, "nope.jpg"), {"path": storage_path})

    def test_delete_is_idempotent(self, storage, storage_path: str, source_file: str) -> None:
        opts = {"path": storage_path}
        storage.save("42", "coffee.jpg", source_file, opts)

        storage.delete("42", "coffee.jpg", opts)
        storage.delete("42", "coffee.jpg", opts)

        assert not os.path.exists(os.path.join(storage_path, "42", "coffee.jpg"))

    def test_copy(self, storage, storage_path: str, source_file: str) -> None:
        opts = {"path": storage_path}
        storage.save("1", "coffee.jpg", source_file, opts)

        storage.copy("1", "coffee.jpg", "2", "beans.jpg", opts)

        assert os.path.isfile(os.path.join(storage_path, "1", "coffee.jpg"))
        assert os.path.isfile(os.path.join(storage_path, "2", "beans.jpg"))

    def test_retrieve(self, tmp_path, storage, storage_path: str, source_file: str) -> None:
        opts = {"path": storage_path}
        storage.save("1", "coffee.jpg", source_file, opts)
        destination = str(tmp_path / "retrieved.jpg")

        storage.retrieve("1", "coffee.jpg", destination, opts)

        with open(destination, "rb") as fh, open(source_file, "rb") as src:
            assert fh.read() == src.read()

    def test_retrieve_missing_file(self, tmp_path, storage, storage_path: str) -> None:
        with pytest.raises(StorageError) as exc_info:
            storage.retrieve("1", "missing.jpg", str(tmp_path / "out.jpg"), {"path": storage_path})
        assert exc_info.value.operation == "retrieve"

    @pytest.mark.parametrize(
        ("opts", "expected"),
        [
            ({}, "path/to/file.ext"),
            ({"base_uri": "http://example.com"}, "http://example.com/path/to/file.ext"),
            ({"base_uri": "/uploads/"}, "/uploads/path/to/file.ext"),
        ],
    )
    def test_build_uri(self, storage, opts, expected) -> None:
        assert storage.build_uri("path/to", "file.ext", opts) == expected

    def test_build_uri_without_directory(self, storage) -> None:
        assert storage.build_uri("", "coffee.jpg", {"base_uri": "http://example.com"}) == "http://example.com/coffee.jpg"

    def test_build_uri_keeps_base_uri_for_leading_slash(self, storage) -> None:
        assert storage.build_uri("/42", "coffee.jpg", {"base_uri": "http://example.com"}) == "http://example.com/42/coffee.jpg"
        assert storage.build_uri("/42", "coffee.jpg", {}) == "42/coffee.jpg"


class TestGetStorage:
    """Test suite for backend resolution."""

    def test_by_name(self) -> None:
        assert isinstance(get_storage("filesystem"), FileSystemStorage)

    def test_by_class_and_instance(self) -> None:
        instance = FileSystemStorage()
        assert isinstance(get_storage(FileSystemStorage), FileSystemStorage)
        assert get_storage(instance) is instance

    def test_unknown_name(self) -> None:
        with pytest.raises(OptionsError):
            get_storage("ftp")

    def test_invalid_value(self) -> None:
        with pytest.raises(OptionsError):
            get_storage(42)

    def test_backends_share_the_contract(self) -> None:
        assert issubclass(FileSystemStorage, Storage)
