"""Integration tests for the Uploader operations on the filesystem backend."""

from __future__ import annotations

import os

import httpx
import pytest

from attache import Uploader
from attache.pipeline.errors import (
    NotRegeneratableError,
    SourceError,
    StorageError,
    UnknownVersionError,
)


class CoffeeUploader(Uploader):
    options = {"versions": ["original", "thumb"]}

    def storage_dir(self, state, version):
        return str(state.scope["id"])

    def transform(self, state, version):
        if version == "thumb":
            return ("cp", "")
        return super().transform(state, version)


class PagesUploader(Uploader):
    options = {"versions": ["original", "pages"]}

    def transform(self, state, version):
        if version != "pages":
            return None

        def split(source_path: str) -> list[str]:
            paths = []
            for index in range(3):
                path = os.path.join(os.path.dirname(source_path), f"page-{index}.jpg")
                with open(path, "wb") as fh:
                    fh.write(f"page {index}".encode())
                paths.append(path)
            return paths

        return split


@pytest.fixture
def uploader(settings) -> CoffeeUploader:
    return CoffeeUploader(settings=settings)


@pytest.fixture
def opts(storage_path: str) -> dict:
    return {"storage_opts": {"path": storage_path, "base_uri": "http://example.com"}}


def read(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


class TestStoreAndUrl:
    """store() and url()."""

    @pytest.mark.asyncio
    async def test_store(self, uploader, opts, storage_path: str, source_file: str) -> None:
        state = await uploader.store(source_file, {"id": 42}, **opts)

        assert state.ok
        assert read(os.path.join(storage_path, "42", "coffee.jpg")) == read(source_file)
        assert read(os.path.join(storage_path, "42", "coffee_thumb.jpg")) == read(source_file)

    def test_url_from_filename(self, uploader, opts) -> None:
        assert uploader.url("coffee.jpg", scope={"id": 42}, **opts) == "http://example.com/42/coffee.jpg"
        assert uploader.url("coffee.jpg", "thumb", {"id": 42}, **opts) == "http://example.com/42/coffee_thumb.jpg"

    @pytest.mark.asyncio
    async def test_url_from_stored_state(self, uploader, opts, source_file: str) -> None:
        state = await uploader.store(source_file, {"id": 42}, **opts)
        assert uploader.url(state, "thumb", **opts) == "http://example.com/42/coffee_thumb.jpg"

    @pytest.mark.asyncio
    async def test_leading_slash_storage_dir_stays_under_path(
        self, settings, opts, storage_path: str, source_file: str
    ) -> None:
        class AbsoluteDirUploader(Uploader):
            def storage_dir(self, state, version):
                return "/" + str(state.scope["id"])

        uploader = AbsoluteDirUploader(settings=settings)
        state = await uploader.store(source_file, {"id": "attache-scope-42"}, **opts)

        assert state.errors == {}
        assert os.path.isfile(os.path.join(storage_path, "attache-scope-42", "coffee.jpg"))
        assert not os.path.exists("/attache-scope-42")
        assert uploader.url(state, **opts) == "http://example.com/attache-scope-42/coffee.jpg"

    def test_url_without_base_uri(self, settings) -> None:
        assert Uploader(settings=settings).url("coffee.jpg") == "coffee.jpg"


class TestDelete:
    """delete()."""

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, uploader, opts, storage_path: str, source_file: str) -> None:
        await uploader.store(source_file, {"id": 42}, **opts)

        first = await uploader.delete("coffee.jpg", {"id": 42}, **opts)
        second = await uploader.delete("coffee.jpg", {"id": 42}, **opts)

        assert first.errors == {}
        assert second.errors == {}
        assert os.listdir(os.path.join(storage_path, "42")) == []

    @pytest.mark.asyncio
    async def test_delete_removes_every_output_file(self, settings, opts, storage_path: str, source_file: str) -> None:
        uploader = PagesUploader(settings=settings)
        state = await uploader.store(source_file, **opts)
        assert len(os.listdir(storage_path)) == 4

        deleted = await uploader.delete(state, **opts)

        assert deleted.errors == {}
        assert os.listdir(storage_path) == []

    @pytest.mark.asyncio
    async def test_delete_from_saved_map_removes_every_output_file(
        self, settings, opts, storage_path: str, source_file: str
    ) -> None:
        uploader = PagesUploader(settings=settings)
        state = await uploader.store(source_file, **opts)
        saved = uploader.save(state, "json")

        deleted = await uploader.delete(saved, **opts)

        assert deleted.errors == {}
        assert os.listdir(storage_path) == []


class TestCopy:
    """copy()."""

    @pytest.mark.asyncio
    async def test_copy_to_another_scope(self, uploader, opts, storage_path: str, source_file: str) -> None:
        await uploader.store(source_file, {"id": 42}, **opts)

        state = await uploader.copy("coffee.jpg", "coffee.jpg", {"id": 42}, {"id": 43}, **opts)

        assert state.errors == {}
        assert state.scope == {"id": 43}
        assert state.versions["thumb"].storage_dir == "43"
        assert sorted(os.listdir(os.path.join(storage_path, "43"))) == ["coffee.jpg", "coffee_thumb.jpg"]
        assert sorted(os.listdir(os.path.join(storage_path, "42"))) == ["coffee.jpg", "coffee_thumb.jpg"]

    @pytest.mark.asyncio
    async def test_copy_under_a_new_name(self, uploader, opts, storage_path: str, source_file: str) -> None:
        await uploader.store(source_file, {"id": 42}, **opts)

        state = await uploader.copy("coffee.jpg", "beans.jpg", {"id": 42}, **opts)

        assert state.filename == "beans.jpg"
        assert sorted(os.listdir(os.path.join(storage_path, "42"))) == [
            "beans.jpg",
            "beans_thumb.jpg",
            "coffee.jpg",
            "coffee_thumb.jpg",
        ]

    @pytest.mark.asyncio
    async def test_copy_of_a_multi_output_version(
        self, settings, opts, storage_path: str, source_file: str
    ) -> None:
        uploader = PagesUploader(settings=settings)
        state = await uploader.store(source_file, **opts)

        copied = await uploader.copy(state, "tea.jpg", **opts)

        assert copied.errors == {}
        assert copied.versions["pages"].assigns == {"outputs": 3}
        assert sorted(os.listdir(storage_path)) == [
            "coffee.jpg",
            "coffee_pages-1.jpg",
            "coffee_pages-2.jpg",
            "coffee_pages.jpg",
            "tea.jpg",
            "tea_pages-1.jpg",
            "tea_pages-2.jpg",
            "tea_pages.jpg",
        ]
        assert read(os.path.join(storage_path, "tea_pages-2.jpg")) == b"page 2"

        await uploader.delete(uploader.save(copied, "map"), **opts)
        assert sorted(os.listdir(storage_path)) == [
            "coffee.jpg",
            "coffee_pages-1.jpg",
            "coffee_pages-2.jpg",
            "coffee_pages.jpg",
        ]

    @pytest.mark.asyncio
    async def test_copy_of_missing_files_records_errors(self, uploader, opts) -> None:
        state = await uploader.copy("ghost.jpg", "copy.jpg", {"id": 1}, **opts)

        assert set(state.errors) == {"original", "thumb"}
        assert all(entries[0][0] == "storage" for entries in state.errors.values())


class TestRetrieve:
    """retrieve()."""

    @pytest.mark.asyncio
    async def test_retrieve_into_temp_file(self, uploader, opts, source_file: str) -> None:
        await uploader.store(source_file, {"id": 42}, **opts)

        path = await uploader.retrieve("coffee.jpg", "thumb", {"id": 42}, **opts)

        try:
            assert path.endswith(".jpg")
            assert read(path) == read(source_file)
        finally:
            os.remove(path)

    @pytest.mark.asyncio
    async def test_retrieve_into_destination(self, tmp_path, uploader, opts, source_file: str) -> None:
        await uploader.store(source_file, {"id": 42}, **opts)
        destination = str(tmp_path / "local.jpg")

        path = await uploader.retrieve("coffee.jpg", scope={"id": 42}, destination=destination, **opts)

        assert path == destination
        assert read(destination) == read(source_file)

    @pytest.mark.asyncio
    async def test_retrieve_missing_file(self, uploader, opts) -> None:
        with pytest.raises(StorageError):
            await uploader.retrieve("ghost.jpg", scope={"id": 42}, **opts)

    @pytest.mark.asyncio
    async def test_retrieve_unknown_version(self, uploader, opts) -> None:
        with pytest.raises(UnknownVersionError):
            await uploader.retrieve("coffee.jpg", "poster", {"id": 42}, **opts)


class TestRegenerate:
    """regenerate()."""

    @pytest.mark.asyncio
    async def test_regenerate_builds_a_new_version_from_the_original(
        self, uploader, opts, storage_path: str, source_file: str
    ) -> None:
        state = await uploader.store(source_file, {"id": 42}, versions=["original"], **opts)
        saved = uploader.save(state.with_version("original", state.versions["original"].assign("hash", "abc")), "map")

        result = await uploader.regenerate(saved, ["thumb"], {"id": 42}, **opts)

        assert result.errors == {}
        assert result.versions["original"].assigns == {"hash": "abc"}
        assert result.versions["thumb"].filename == "coffee_thumb.jpg"
        assert read(os.path.join(storage_path, "42", "coffee_thumb.jpg")) == read(source_file)
        assert not os.path.exists(result.source_path)

    @pytest.mark.asyncio
    async def test_original_cannot_be_regenerated(self, uploader, opts) -> None:
        with pytest.raises(NotRegeneratableError):
            await uploader.regenerate("coffee.jpg", ["original"], {"id": 42}, **opts)

    @pytest.mark.asyncio
    async def test_unknown_version(self, uploader, opts) -> None:
        with pytest.raises(UnknownVersionError):
            await uploader.regenerate("coffee.jpg", ["poster"], {"id": 42}, **opts)

    @pytest.mark.asyncio
    async def test_missing_original(self, uploader, opts) -> None:
        with pytest.raises(StorageError):
            await uploader.regenerate("ghost.jpg", ["thumb"], {"id": 42}, **opts)


class TestSaveRestore:
    """save() and restore() on the uploader."""

    @pytest.mark.asyncio
    async def test_restore_saved_map(self, uploader, opts, source_file: str) -> None:
        state = await uploader.store(source_file, {"id": 42}, **opts)
        state = state.assign("uploaded_by", 7)

        restored = uploader.restore(uploader.save(state, "map"), scope={"id": 42})

        assert restored.filename == "coffee.jpg"
        assert restored.assigns == {"uploaded_by": 7}
        assert list(restored.versions) == ["original", "thumb"]
        assert restored.uploader is uploader


class TestSources:
    """The input shapes accepted by store()."""

    @pytest.mark.asyncio
    async def test_binary(self, settings, storage_path: str) -> None:
        state = await Uploader(settings=settings).store(
            {"filename": "beans.jpg", "binary": b"roasted"},
            storage_opts={"path": storage_path},
        )

        assert state.ok
        assert read(os.path.join(storage_path, "beans.jpg")) == b"roasted"
        assert all(not os.path.exists(path) for path in state.temp_paths)

    @pytest.mark.asyncio
    async def test_filename_and_path(self, settings, storage_path: str, source_file: str) -> None:
        state = await Uploader(settings=settings).store(
            {"filename": "renamed.jpg", "path": source_file},
            storage_opts={"path": storage_path},
        )

        assert state.filename == "renamed.jpg"
        assert os.path.isfile(os.path.join(storage_path, "renamed.jpg"))
        assert os.path.isfile(source_file)

    @pytest.mark.asyncio
    async def test_url(self, monkeypatch, settings, storage_path: str) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == "https://example.com/images/latte%20art.jpg"
            return httpx.Response(200, content=b"foam")

        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            "attache.sources.httpx.AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )

        state = await Uploader(settings=settings).store(
            "https://example.com/images/latte%20art.jpg",
            storage_opts={"path": storage_path},
        )

        assert state.filename == "latte art.jpg"
        assert read(os.path.join(storage_path, "latte art.jpg")) == b"foam"

    @pytest.mark.asyncio
    async def test_failed_download(self, monkeypatch, settings, storage_path: str) -> None:
        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            "attache.sources.httpx.AsyncClient",
            lambda **kwargs: real_client(
                transport=httpx.MockTransport(lambda request: httpx.Response(404)), **kwargs
            ),
        )

        with pytest.raises(SourceError):
            await Uploader(settings=settings).store(
                "https://example.com/missing.jpg", storage_opts={"path": storage_path}
            )

    @pytest.mark.asyncio
    async def test_missing_path(self, settings, tmp_path) -> None:
        with pytest.raises(SourceError):
            await Uploader(settings=settings).store(str(tmp_path / "nope.jpg"))

    @pytest.mark.asyncio
    async def test_unsupported_input(self, settings) -> None:
        with pytest.raises(SourceError):
            await Uploader(settings=settings).store(42)
