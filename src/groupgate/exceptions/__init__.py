from groupgate.exceptions.handlers import (
    ConfigurationError,
    GroupGateException,
    InvalidArgumentError,
)

__all__ = [
    "GroupGateException",
    "InvalidArgumentError",
    "ConfigurationError",
]
