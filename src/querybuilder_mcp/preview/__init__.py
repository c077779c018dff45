"""SQL preview package.

Formats backend-generated SQL with sqlglot for the preview step.
"""

from __future__ import annotations

from .service import Dialect, SqlPreviewService, normalize_dialect

__all__ = [
    "Dialect",
    "SqlPreviewService",
    "normalize_dialect",
]
