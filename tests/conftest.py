from pathlib import Path
from typing import Dict, List, Optional

import pytest
import requests

from app import create_app
from cache import PosterCacheStore
from config import Config
from pipeline import PosterPipeline
from scraper import PosterResolver

# Smallest valid JPEG header plus padding, enough for filetype to recognise it
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 64


class FakeResolver(PosterResolver):
    def __init__(self, urls: Optional[Dict[str, str]] = None, error: Optional[Exception] = None):
        self.urls = urls or {}
        self.error = error
        self.calls: List[str] = []

    def resolve(self, title: str) -> Optional[str]:
        self.calls.append(title)
        if self.error:
            raise self.error
        return self.urls.get(title.strip().lower())


class FakeFetcher:
    def __init__(self, downloads_dir: Path, payload: bytes = JPEG_BYTES,
                 error: Optional[Exception] = None):
        self.downloads_dir = downloads_dir
        self.payload = payload
        self.error = error
        self.calls: List[tuple] = []

    def fetch(self, url: str, dest_filename: str) -> Path:
        self.calls.append((url, dest_filename))
        if self.error:
            raise self.error
        self.downloads_dir.mkdir(parents=True, exist_ok=True)
        path = self.downloads_dir / dest_filename
        path.write_bytes(self.payload)
        return path


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", content: bytes = b""):
        self.status_code = status_code
        self.text = text
        self.content = content

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


@pytest.fixture
def config(tmp_path) -> Config:
    return Config.for_directory(tmp_path)


@pytest.fixture
def store(config) -> PosterCacheStore:
    return PosterCacheStore(config.cache_file).open()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver({"inception": "https://image.tmdb.org/t/p/original/inception.jpg"})


@pytest.fixture
def fetcher(config) -> FakeFetcher:
    return FakeFetcher(config.downloads_dir)


@pytest.fixture
def pipeline(store, resolver, fetcher) -> PosterPipeline:
    return PosterPipeline(store=store, resolver=resolver, fetcher=fetcher)


@pytest.fixture
def client(config, pipeline):
    app = create_app(config, pipeline=pipeline)
    app.config["TESTING"] = True
    return app.test_client()
