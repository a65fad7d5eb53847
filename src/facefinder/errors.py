"""Error taxonomy for the face detection pipeline.

Every error carries the HTTP status it maps to. The application turns
them into plain-text responses (see ``facefinder.main``).
"""

from __future__ import annotations

from fastapi import status


class FaceFinderError(Exception):
    """Base class for all request-aborting pipeline errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MalformedRequest(FaceFinderError):
    """The body is not a parseable multipart form."""

    status_code = status.HTTP_400_BAD_REQUEST


class MissingInput(FaceFinderError):
    """No uploads were found under the image field."""

    status_code = status.HTTP_400_BAD_REQUEST


class StreamError(FaceFinderError):
    """An upload entry could not be opened as a file stream."""

    status_code = status.HTTP_400_BAD_REQUEST


class StorageError(FaceFinderError):
    """A temporary file could not be created, written or read back."""


class DetectionError(FaceFinderError):
    """The image could not be decoded or the classifier could not run."""


class EncodingError(FaceFinderError):
    """The response could not be serialized."""


class ServiceBusy(FaceFinderError):
    """No worker became free within the queue timeout."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
