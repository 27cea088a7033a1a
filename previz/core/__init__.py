"""Core utilities: configuration, logging, exceptions and shared types."""

from previz.core.exceptions import PrevizError
from previz.core.logging_config import get_logger, setup_logging
from previz.core.result import Result
from previz.core.user_context import UserContext

__all__ = [
    "PrevizError",
    "Result",
    "UserContext",
    "get_logger",
    "setup_logging",
]
