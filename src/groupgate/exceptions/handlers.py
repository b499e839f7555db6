from __future__ import annotations

from typing import Any, Dict, Optional


class GroupGateException(Exception):
    """
    Base exception for group access errors.

    Carries message/code/status_code/details/user_message so callers
    (CLI, API layers) can render it uniformly via to_dict().
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "GROUPGATE_ERROR",
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details: Dict[str, Any] = details or {}
        self.user_message = user_message or message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
        }

    def __str__(self) -> str:  # pragma: no cover
        return self.message


class InvalidArgumentError(GroupGateException):
    def __init__(self, message: str, field: Optional[str] = None, **kwargs: Any):
        details: Dict[str, Any] = {"field": field} if field else {}
        details.update(kwargs)
        self.field = field
        super().__init__(
            message=message,
            code="INVALID_ARGUMENT",
            status_code=422,
            details=details,
            user_message=f"Invalid argument: {message}",
        )


class ConfigurationError(GroupGateException):
    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs: Any):
        details: Dict[str, Any] = {"config_key": config_key} if config_key else {}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            status_code=500,
            details=details,
            user_message="System configuration error",
        )
