"""Utility modules for the translation gateway.

This package provides logging configuration and string helpers for cache keys,
prompt templates and language codes.
"""

from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

__all__: list[str] = ["LoggerUtils", "StringUtils"]
