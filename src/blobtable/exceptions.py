"""Exception hierarchy for blobtable.

All custom exceptions inherit from :class:`BlobtableError` so callers can catch
everything raised by the package with a single clause, while still matching the
builtin exception type each one extends.
"""

from __future__ import annotations

from collections.abc import Mapping


class BlobtableError(Exception):
    """Base exception for all blobtable errors."""


class InvalidInputError(BlobtableError, ValueError):
    """Raised when the statistic image cannot be tabulated (e.g. multiple frames)."""


class AtlasError(BlobtableError, ValueError):
    """Raised when an atlas definition or lookup table is unusable."""


class ReconciliationError(BlobtableError, RuntimeError):
    """Raised when a cluster cannot be matched unambiguously across descriptor tables."""

    def __init__(self, source: str, index: int, key: Mapping[str, object], n_matches: int):
        """Initialize the error."""
        self.source = source
        self.index = index
        self.key = dict(key)
        self.n_matches = n_matches
        reason = "no matching row" if n_matches == 0 else f"ambiguous key matches {n_matches} rows"
        key_str = ", ".join(f"{name}={value!r}" for name, value in self.key.items())
        super().__init__(f"Cluster at row {index} could not be reconciled with the {source} table: {reason} ({key_str})")
