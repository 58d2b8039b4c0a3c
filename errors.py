from typing import Any, Dict, Optional


class PosterServiceError(Exception):
    """Base error carrying an HTTP status and a machine-readable kind."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message, "kind": self.kind}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(PosterServiceError):
    status_code = 400
    kind = "validation_error"


class NotFoundError(PosterServiceError):
    status_code = 404
    kind = "not_found"


class UpstreamError(PosterServiceError):
    """The search page could not be fetched."""

    kind = "upstream_error"


class DownloadError(PosterServiceError):
    """The poster image could not be downloaded or written."""

    kind = "download_error"


class InternalError(PosterServiceError):
    kind = "internal_error"
