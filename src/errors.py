"""
API error types
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException


class ApiError(HTTPException):
    """
    HTTP error rendered as {"success": false, "reason": ..., **extra}

    Extra keyword arguments are merged into the response body.
    """

    def __init__(
        self,
        status_code: int,
        reason: str,
        headers: Optional[Dict[str, str]] = None,
        **extra: Any
    ):
        super().__init__(status_code=status_code, detail=reason, headers=headers)
        self.reason = reason
        self.extra = extra

    def to_body(self) -> Dict[str, Any]:
        return {"success": False, "reason": self.reason, **self.extra}


class DatabaseNotConfiguredError(ValueError):
    """Raised when the selected backend has no credentials"""
