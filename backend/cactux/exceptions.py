"""
Cactux Topo Backend — Custom Exception Hierarchy
==================================================

What:  Application-specific exceptions for the annotation pipeline.
Why:   Targeted error handling with appropriate HTTP status codes and
       user-friendly messages, without leaking internals to the client.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) convert them into
       the uniform `{"error": ...}` failure body.
Who:   Raised by services; caught by global handlers.

Exception Hierarchy:
    CactuxError (base)
    ├── ValidationError          → 400 Bad Request (malformed payload)
    ├── NotFoundError            → 404 Not Found (unknown record)
    ├── ImageProcessingError     → 500 (decode/encode failure)
    ├── StorageError             → 500 (blob upload failed, record untouched)
    └── RecordUpdateError        → 500 (blob stored, record update failed)
"""

from typing import Any, Dict, Optional


class CactuxError(Exception):
    """
    Base exception for all Cactux application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(CactuxError):
    """
    Raised when client input fails validation.

    When:    Missing or malformed data URL, bad base64, non-positive or
             oversized dimensions, unsafe record id.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(CactuxError):
    """
    Raised when a record to update does not exist.

    Note: the blob has usually been written by the time this is raised; it
    stays behind and is overwritten by the next successful save.
    """

    def __init__(
        self,
        resource: str = "record",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ImageProcessingError(CactuxError):
    """
    Raised when the pipeline cannot decode, resize, or encode an image.

    HTTP:    500 with a generic message; the decoder's own error goes to the
             server log via `context`.
    """

    def __init__(
        self,
        message: str = "Failed to process image",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageError(CactuxError):
    """
    Raised when writing to or reading from the blob store fails.

    Raised before any record update, so no `image`/`image_line` mutation
    happens when the upload fails.
    """

    def __init__(
        self,
        message: str = "Failed to store image",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RecordUpdateError(CactuxError):
    """
    Raised when the record store rejects the update after a successful upload.
    """

    def __init__(
        self,
        message: str = "Failed to update record",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)

