"""Backend client package for the query-builder HTTP service."""

from __future__ import annotations

from .backend import BackendClient, TokenProvider

__all__ = [
    "BackendClient",
    "TokenProvider",
]
