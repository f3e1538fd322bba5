"""Core domain types and logic."""

from .config import ReleaseConfig, Settings, load_settings
from .errors import ErrorCode, PublishError
from .result import Err, Ok, Result, is_err, is_ok

__all__ = [
    # config
    "ReleaseConfig",
    "Settings",
    "load_settings",
    # errors
    "ErrorCode",
    "PublishError",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
]
