"""Lettrage - Rapprochement de transactions de relevés et de factures."""

from lettrage.config import (
    ConfigFileError,
    ConflictError,
    LettrageError,
    NotFoundError,
    ValidationError,
)
from lettrage.io_excel import SpreadsheetError

__all__ = [
    "__version__",
    "LettrageError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ConfigFileError",
    "SpreadsheetError",
]

__version__ = "0.1.0"
