"""Storage SDK error types."""


class VlibeStorageError(Exception):
    """Base class for Vlibe Storage client errors."""


class TransportError(VlibeStorageError):
    """Request could not be completed or the response body was unreadable."""


class ApiError(VlibeStorageError):
    """The API answered with an unsuccessful envelope."""


class UploadError(VlibeStorageError):
    """File upload failed.

    When the bytes already reached the storage backend but the metadata record
    was never created, ``key`` holds the storage key of the orphaned object.
    """

    def __init__(self, message: str, *, key: str | None = None):
        super().__init__(message)
        self.key = key
