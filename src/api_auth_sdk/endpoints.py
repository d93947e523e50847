"""Public endpoint classification."""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import urlsplit

from .config import DEFAULT_PUBLIC_PATHS


class PublicEndpointClassifier:
    """Decides whether a request path is reachable without a credential.

    Matching is by substring against the path component, so
    ``/auth/login/social`` and ``/locations/provinces`` are public too.
    """

    def __init__(self, public_paths: Iterable[str] = DEFAULT_PUBLIC_PATHS) -> None:
        self._fragments = tuple(public_paths)

    @property
    def fragments(self) -> tuple[str, ...]:
        return self._fragments

    def is_public(self, path: str) -> bool:
        """Check if the endpoint must skip authentication.

        Args:
            path: Request path, relative or an absolute URL.

        Returns:
            True if no Authorization header may be attached.
        """
        if "://" in path:
            path = urlsplit(path).path
        return any(fragment in path for fragment in self._fragments)
