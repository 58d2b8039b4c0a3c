"""Runtime settings for the poster service, read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_PORT = 2525
DEFAULT_MAX_FIELD_LENGTH = 25
DEFAULT_REQUEST_TIMEOUT = 30.0


@dataclass
class Config:
    """Filesystem locations and limits used by the service."""

    data_dir: Path
    downloads_dir: Path
    cache_file: Path
    submissions_html: Path
    submissions_json: Path
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    max_field_length: int = DEFAULT_MAX_FIELD_LENGTH
    request_timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def for_directory(cls, data_dir: Path, **overrides) -> "Config":
        data_dir = Path(data_dir).resolve()
        values = dict(
            data_dir=data_dir,
            downloads_dir=data_dir / "downloads",
            cache_file=data_dir / "movie-cache.json",
            submissions_html=data_dir / "submissions.html",
            submissions_json=data_dir / "submissions.json",
        )
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_env(cls) -> "Config":
        env = os.environ
        data_dir = Path(env.get("POSTER_DATA_DIR", os.getcwd())).resolve()
        overrides = {}
        if env.get("POSTER_DOWNLOADS_DIR"):
            overrides["downloads_dir"] = Path(env["POSTER_DOWNLOADS_DIR"]).resolve()
        if env.get("POSTER_CACHE_FILE"):
            overrides["cache_file"] = Path(env["POSTER_CACHE_FILE"]).resolve()
        if env.get("SUBMISSIONS_HTML_FILE"):
            overrides["submissions_html"] = Path(env["SUBMISSIONS_HTML_FILE"]).resolve()
        if env.get("SUBMISSIONS_JSON_FILE"):
            overrides["submissions_json"] = Path(env["SUBMISSIONS_JSON_FILE"]).resolve()

        timeout = float(env.get("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT))
        return cls.for_directory(
            data_dir,
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", DEFAULT_PORT)),
            max_field_length=int(env.get("SUBMISSION_MAX_LENGTH", DEFAULT_MAX_FIELD_LENGTH)),
            # 0 leaves outbound calls without a timeout
            request_timeout=timeout or None,
            **overrides,
        )

    def ensure_directories(self) -> None:
        for directory in (
            self.data_dir,
            self.downloads_dir,
            self.cache_file.parent,
            self.submissions_html.parent,
            self.submissions_json.parent,
        ):
            directory.mkdir(parents=True, exist_ok=True)
