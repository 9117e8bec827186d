"""
Pydantic configuration for delimload.
"""

from .models import (
    Environment,
    BoolStyle,
    AbortScope,
    UNBOUNDED,
    DatabaseConfig,
    IngestionConfig,
    AppConfig,
)
from .loader import ConfigLoader


__all__ = [
    "Environment",
    "BoolStyle",
    "AbortScope",
    "UNBOUNDED",
    "DatabaseConfig",
    "IngestionConfig",
    "AppConfig",
    "ConfigLoader",
]
