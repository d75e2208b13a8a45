"""
Tests for the local-directory and HTTP dataset sources.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from gazetteer_search.config import DataSourceConfig
from gazetteer_search.exceptions import DatasetError, DatasetFetchError, DatasetFormatError
from gazetteer_search.sources import HttpDatasetSource, LocalDatasetSource, source_from_settings


class TestLocalDatasetSource:
    def test_reads_json(self, tmp_path):
        (tmp_path / "villages").mkdir()
        (tmp_path / "villages" / "it.json").write_text(
            json.dumps([{"id": "1", "n": "Milano"}]), encoding="utf-8"
        )
        source = LocalDatasetSource(tmp_path)
        assert asyncio.run(source.get_json("villages/it.json")) == [{"id": "1", "n": "Milano"}]

    def test_missing_file(self, tmp_path):
        source = LocalDatasetSource(tmp_path)
        with pytest.raises(DatasetFetchError) as exc_info:
            asyncio.run(source.get_json("villages/zz.json"))
        assert exc_info.value.path == "villages/zz.json"

    def test_invalid_json(self, tmp_path):
        (tmp_path / "broken.json").write_text("[{", encoding="utf-8")
        source = LocalDatasetSource(tmp_path)
        with pytest.raises(DatasetFormatError):
            asyncio.run(source.get_json("broken.json"))


def _http_source(handler) -> HttpDatasetSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpDatasetSource("https://tiles.example.test", client=client)


class TestHttpDatasetSource:
    def test_fetches_relative_path(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"IT": [36, 6, 47, 19]})

        source = _http_source(handler)
        assert asyncio.run(source.get_json("villages/_bboxes.json")) == {"IT": [36, 6, 47, 19]}
        assert seen == ["https://tiles.example.test/villages/_bboxes.json"]

    def test_http_error_status(self):
        source = _http_source(lambda request: httpx.Response(404))
        with pytest.raises(DatasetFetchError, match="HTTP 404"):
            asyncio.run(source.get_json("villages/zz.json"))

    def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        source = _http_source(handler)
        with pytest.raises(DatasetFetchError):
            asyncio.run(source.get_json("cities/major.json"))

    def test_invalid_json_body(self):
        source = _http_source(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        with pytest.raises(DatasetFormatError):
            asyncio.run(source.get_json("cities/major.json"))

    def test_errors_share_a_base(self):
        assert issubclass(DatasetFetchError, DatasetError)
        assert issubclass(DatasetFormatError, DatasetError)

    def test_injected_client_left_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        source = HttpDatasetSource("https://tiles.example.test", client=client)
        asyncio.run(source.aclose())
        assert not client.is_closed


class TestSourceFromSettings:
    def test_local_without_base_url(self, settings, tmp_path):
        cfg = settings.__class__(
            source=DataSourceConfig(data_dir=str(tmp_path), base_url=""),
            loader=settings.loader,
            viewport=settings.viewport,
            search=settings.search,
        )
        source = source_from_settings(cfg)
        assert isinstance(source, LocalDatasetSource)
        assert source.root == tmp_path

    def test_http_with_base_url(self, settings):
        cfg = settings.__class__(
            source=DataSourceConfig(base_url="https://tiles.example.test/data/"),
            loader=settings.loader,
            viewport=settings.viewport,
            search=settings.search,
        )
        source = source_from_settings(cfg)
        assert isinstance(source, HttpDatasetSource)
        assert source.base_url == "https://tiles.example.test/data"
        asyncio.run(source.aclose())
