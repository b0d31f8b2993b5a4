"""
Configuration module: settings, logging, constants.
"""

from crud_shared.config.settings import settings, get_settings
from crud_shared.config.logging import get_logger, setup_logging
from crud_shared.config.constants import (
    FilterTypes,
    Operators,
    SortDirection,
    AccessPermission,
    Limits,
    SLUG,
    BLANK_STRING,
)

__all__ = [
    # settings
    "settings",
    "get_settings",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "FilterTypes",
    "Operators",
    "SortDirection",
    "AccessPermission",
    "Limits",
    "SLUG",
    "BLANK_STRING",
]
