"""Core components for the API auth SDK.

Infrastructure shared between the sync and async clients.
"""

from __future__ import annotations

from .errors import ErrorFactory

__all__ = [
    "ErrorFactory",
]
