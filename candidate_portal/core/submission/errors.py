"""
Error taxonomy for candidate submissions and retrieval.

Two families matter to callers:
- Client errors (bad input, unknown ids). The message is safe to show.
- Infrastructure errors (probe tool missing, storage unreachable). The
  message shown to clients is generic; details go to the server log.

The HTTP layer maps each class to a status code in one place (main.py),
so the domain code only raises and never builds responses.
"""


class CandidatePortalError(Exception):
    """Base class for all application errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CandidatePortalError):
    """Submission rejected because of client input."""

    status_code = 400


class InvalidIdError(CandidatePortalError):
    """An id in the request path is not syntactically valid."""

    status_code = 400


class CandidateNotFoundError(CandidatePortalError):
    """No candidate record exists for a well-formed id."""

    status_code = 404

    def __init__(self, message: str = "Candidate not found") -> None:
        super().__init__(message)


class BlobNotFoundError(CandidatePortalError):
    """No blob of the requested kind exists for a well-formed id."""

    status_code = 404

    def __init__(self, message: str = "File not found") -> None:
        super().__init__(message)


class PayloadTooLargeError(CandidatePortalError):
    """Request body exceeds the overall upload ceiling."""

    status_code = 413


class InfrastructureError(CandidatePortalError):
    """
    A dependency failed (media probe, blob store, metadata store).

    The exception text carries the detail for the server log. Clients only
    ever see `public_message` and the short machine-readable `code`.
    """

    status_code = 500
    code: str = "server_error"
    public_message: str = "Server error"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.public_message)
        self.message = self.public_message


class VideoProbeError(InfrastructureError):
    """FFprobe is unavailable, timed out, or could not read the video."""

    code = "video_probe_failed"
    public_message = "Video duration check failed. Make sure ffmpeg is installed on server."


class StorageError(InfrastructureError):
    """Blob store operation failed."""

    code = "storage_error"


class BlobStreamError(StorageError):
    """Blob download failed after the response started streaming."""


class RepositoryError(InfrastructureError):
    """Metadata store operation failed."""

    code = "storage_error"
