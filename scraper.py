import logging
import re
import urllib.parse
from pathlib import Path
from typing import Optional

import filetype
import requests
from bs4 import BeautifulSoup

from errors import DownloadError, UpstreamError

logger = logging.getLogger(__name__)

# Constants
BASE_URL = "https://www.themoviedb.org"
SEARCH_ENDPOINT = "/search"
IMAGE_EXTENSION = ".jpg"

# TMDB rejects requests that do not look like they come from a browser
HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
    'Connection': 'keep-alive',
}

SIZE_VARIANT_PATTERN = re.compile(r"/w\d+_and_h\d+_[a-z0-9]+", re.IGNORECASE)
UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9]")


class ScraperSession:
    def __init__(self, timeout: Optional[float] = 30.0):
        self.session = requests.Session()
        self.session.headers.update(HEADERS)
        self.timeout = timeout

    def get(self, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        return self.session.get(url, **kwargs)

    def close(self) -> None:
        self.session.close()


def sanitize_filename(title: str, extension: str = IMAGE_EXTENSION) -> str:
    """Turn a movie title into a filesystem-safe image filename."""
    return UNSAFE_FILENAME_CHARS.sub("_", title).lower() + extension


def normalize_poster_url(src: str, base_url: str = BASE_URL) -> str:
    """Make a poster src absolute and ask for the unscaled image."""
    if src.startswith("//"):
        url = "https:" + src
    elif src.startswith("/"):
        url = base_url + src
    else:
        url = src
    return SIZE_VARIANT_PATTERN.sub("/original", url, count=1)


def detect_mimetype(path: Path) -> Optional[str]:
    """Sniff the image type of a stored poster."""
    try:
        kind = filetype.guess(str(path))
    except OSError as e:
        logger.warning(f"Could not inspect {path}: {e}")
        return None
    if kind and kind.mime.startswith("image/"):
        return kind.mime
    return None


class PosterResolver:
    """Turns a free-text movie title into a poster image URL."""

    def resolve(self, title: str) -> Optional[str]:
        raise NotImplementedError


class TMDBPosterResolver(PosterResolver):
    """Scrapes the TMDB website search page for the first result's poster."""

    RESULT_SELECTOR = ".card.v4.tight"
    POSTER_SELECTOR = "img.poster"

    def __init__(self, session: ScraperSession, base_url: str = BASE_URL,
                 search_endpoint: str = SEARCH_ENDPOINT):
        self.session = session
        self.base_url = base_url
        self.search_endpoint = search_endpoint

    def build_search_url(self, title: str) -> str:
        return f"{self.base_url}{self.search_endpoint}?query={urllib.parse.quote(title, safe='')}"

    def extract_poster_src(self, html: str) -> Optional[str]:
        """Return the src of the first result card's poster image, if any."""
        soup = BeautifulSoup(html, "html.parser")
        card = soup.select_one(self.RESULT_SELECTOR)
        if card is None:
            return None
        img = card.select_one(self.POSTER_SELECTOR)
        if img is None:
            return None
        return img.get("src") or None

    def resolve(self, title: str) -> Optional[str]:
        search_url = self.build_search_url(title)
        logger.info(f"Searching TMDB for '{title}'")

        try:
            resp = self.session.get(search_url)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Error searching movie '{title}': {e}")
            raise UpstreamError("Failed to search for the movie poster", details=str(e)) from e

        src = self.extract_poster_src(resp.text)
        if not src:
            logger.info(f"No poster found for '{title}'")
            return None
        return normalize_poster_url(src, self.base_url)


class ImageFetcher:
    """Downloads poster images into the downloads directory."""

    def __init__(self, session: ScraperSession, downloads_dir: Path):
        self.session = session
        self.downloads_dir = Path(downloads_dir)

    def fetch(self, url: str, dest_filename: str) -> Path:
        try:
            response = self.session.get(url)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Error downloading image {url}: {e}")
            raise DownloadError("Failed to download the poster image", details=str(e)) from e

        filepath = (self.downloads_dir / dest_filename).resolve()
        try:
            self.downloads_dir.mkdir(parents=True, exist_ok=True)
            filepath.write_bytes(response.content)
        except OSError as e:
            logger.error(f"Error writing image {filepath}: {e}")
            raise DownloadError("Failed to save the poster image", details=str(e)) from e

        logger.info(f"Downloaded {len(response.content)} bytes to {filepath}")
        return filepath
