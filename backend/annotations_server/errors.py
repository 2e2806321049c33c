"""Exception types shared by the store, services, and API layers."""


class AnnotationError(Exception):
    """Base exception for annotation errors."""

    def __init__(self, message: str, annotation_id: str | None = None):
        super().__init__(message)
        self.annotation_id = annotation_id


class ValidationError(AnnotationError):
    """Malformed input, rejected before the store is touched."""

    pass


class NotFoundError(AnnotationError):
    """An operation referenced an id that is not in the collection."""

    pass


class StorageCorruptionError(AnnotationError):
    """Persisted data could not be parsed into a collection."""

    pass


class StorageWriteError(AnnotationError):
    """Both the atomic write and the direct fallback write failed."""

    pass
