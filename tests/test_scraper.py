import pytest
import requests

from conftest import JPEG_BYTES, FakeResponse
from errors import DownloadError, UpstreamError
from scraper import (
    HEADERS,
    ImageFetcher,
    ScraperSession,
    TMDBPosterResolver,
    detect_mimetype,
    normalize_poster_url,
    sanitize_filename,
)

SEARCH_HTML = """
<html><body>
  <div class="card v4 tight">
    <div class="image">
      <img class="poster" src="/t/p/w94_and_h141_bestv2/first.jpg" alt="Inception">
    </div>
  </div>
  <div class="card v4 tight">
    <img class="poster" src="/t/p/w94_and_h141_bestv2/second.jpg">
  </div>
</body></html>
"""


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.urls = []

    def get(self, url, **kwargs):
        self.urls.append(url)
        if self.error:
            raise self.error
        return self.response


def test_sanitize_filename_uses_lowercase_alphanumerics_and_underscores():
    assert sanitize_filename("Spider-Man: Homecoming") == "spider_man__homecoming.jpg"
    assert sanitize_filename("Spider-Man: Homecoming") == sanitize_filename("Spider-Man: Homecoming")


@pytest.mark.parametrize("src, expected", [
    ("//image.tmdb.org/t/p/original/img.jpg", "https://image.tmdb.org/t/p/original/img.jpg"),
    ("/img.jpg", "https://www.themoviedb.org/img.jpg"),
    ("https://cdn.example.com/img.jpg", "https://cdn.example.com/img.jpg"),
    ("/t/p/w500_and_h750_bestv2/img.jpg", "https://www.themoviedb.org/t/p/original/img.jpg"),
    ("//image.tmdb.org/t/p/W94_AND_H141_Face/img.jpg", "https://image.tmdb.org/t/p/original/img.jpg"),
])
def test_normalize_poster_url(src, expected):
    assert normalize_poster_url(src) == expected


def test_build_search_url_percent_encodes_title():
    resolver = TMDBPosterResolver(StubSession())
    url = resolver.build_search_url("Spider-Man: Into the Spider/Verse & more")
    assert url == (
        "https://www.themoviedb.org/search?query="
        "Spider-Man%3A%20Into%20the%20Spider%2FVerse%20%26%20more"
    )


def test_extract_poster_src_takes_first_result_card():
    resolver = TMDBPosterResolver(StubSession())
    assert resolver.extract_poster_src(SEARCH_HTML) == "/t/p/w94_and_h141_bestv2/first.jpg"


def test_extract_poster_src_without_results():
    resolver = TMDBPosterResolver(StubSession())
    assert resolver.extract_poster_src("<html><body><p>No results</p></body></html>") is None
    assert resolver.extract_poster_src('<div class="card v4 tight"><img src="x.jpg"></div>') is None


def test_resolve_returns_original_size_absolute_url():
    session = StubSession(FakeResponse(text=SEARCH_HTML))
    resolver = TMDBPosterResolver(session)

    assert resolver.resolve("Inception") == "https://www.themoviedb.org/t/p/original/first.jpg"
    assert session.urls == ["https://www.themoviedb.org/search?query=Inception"]


def test_resolve_returns_none_when_no_card():
    resolver = TMDBPosterResolver(StubSession(FakeResponse(text="<html></html>")))
    assert resolver.resolve("Nothing") is None


def test_resolve_raises_upstream_error_on_bad_status():
    resolver = TMDBPosterResolver(StubSession(FakeResponse(status_code=503)))
    with pytest.raises(UpstreamError) as excinfo:
        resolver.resolve("Inception")
    assert "503" in excinfo.value.details


def test_resolve_raises_upstream_error_on_network_failure():
    resolver = TMDBPosterResolver(StubSession(error=requests.ConnectionError("refused")))
    with pytest.raises(UpstreamError):
        resolver.resolve("Inception")


def test_fetch_writes_image_and_overwrites(tmp_path):
    fetcher = ImageFetcher(StubSession(FakeResponse(content=JPEG_BYTES)), tmp_path / "downloads")
    existing = tmp_path / "downloads" / "inception.jpg"
    existing.parent.mkdir()
    existing.write_bytes(b"old")

    path = fetcher.fetch("https://image.tmdb.org/x.jpg", "inception.jpg")

    assert path == existing.resolve()
    assert path.read_bytes() == JPEG_BYTES


def test_fetch_raises_download_error_on_bad_status(tmp_path):
    fetcher = ImageFetcher(StubSession(FakeResponse(status_code=404)), tmp_path)
    with pytest.raises(DownloadError):
        fetcher.fetch("https://image.tmdb.org/x.jpg", "inception.jpg")
    assert not (tmp_path / "inception.jpg").exists()


def test_fetch_raises_download_error_on_timeout(tmp_path):
    fetcher = ImageFetcher(StubSession(error=requests.Timeout("timed out")), tmp_path)
    with pytest.raises(DownloadError) as excinfo:
        fetcher.fetch("https://image.tmdb.org/x.jpg", "inception.jpg")
    assert excinfo.value.details == "timed out"


def test_scraper_session_sends_browser_headers_and_timeout(monkeypatch):
    session = ScraperSession(timeout=5)
    seen = {}

    def fake_get(url, **kwargs):
        seen["url"] = url
        seen.update(kwargs)
        return FakeResponse()

    monkeypatch.setattr(session.session, "get", fake_get)
    session.get("https://www.themoviedb.org/search?query=x")

    assert seen["timeout"] == 5
    assert session.session.headers["User-Agent"] == HEADERS["User-Agent"]
    assert session.session.headers["User-Agent"].startswith("Mozilla/5.0")


def test_detect_mimetype(tmp_path):
    image = tmp_path / "poster.jpg"
    image.write_bytes(JPEG_BYTES)
    text = tmp_path / "notes.jpg"
    text.write_text("not an image")

    assert detect_mimetype(image) == "image/jpeg"
    assert detect_mimetype(text) is None
