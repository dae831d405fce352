"""Client-side errors of the drawing session."""

from typing import Any, Dict, Optional

from cactux.exceptions import CactuxError


class SessionStateError(CactuxError):
    """An operation was requested in a state that does not allow it."""

    def __init__(self, operation: str, state: str, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx.update(operation=operation, state=state)
        super().__init__(message=f"Cannot {operation} while {state}", context=ctx)
        self.operation = operation
        self.state = state


class SaveError(CactuxError):
    """The save round-trip failed; the finished path is kept for a retry."""

    def __init__(
        self,
        message: str = "Failed to save line",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code


class ImageLoadError(CactuxError):
    """A base or saved-line image could not be fetched or decoded."""

    def __init__(self, url: str, reason: str = ""):
        super().__init__(
            message="Image could not be loaded",
            context={"url": url, "reason": reason},
        )
        self.url = url
