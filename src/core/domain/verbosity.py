"""Output verbosity tiers for bws-cli.

The tiers are totally ordered; every piece of output is gated on a minimum
tier, so everything shown at a lower tier stays visible at a higher one.
Keeping this in the domain layer lets the CLI and the reporter share a single
source of truth.
"""

from __future__ import annotations

from enum import Enum


class Verbosity(str, Enum):
    """Supported output detail levels, from least to most verbose."""

    QUIET = "quiet"
    MINIMAL = "minimal"
    NORMAL = "normal"
    DETAILED = "detailed"
    DIAGNOSTIC = "diagnostic"

    @classmethod
    def default(cls) -> "Verbosity":
        """Return the default verbosity used across the application."""

        return cls.NORMAL

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    def at_least(self, other: "Verbosity") -> bool:
        """True if output gated on `other` must be rendered at this tier."""

        return self.rank >= other.rank


_ORDER = (
    Verbosity.QUIET,
    Verbosity.MINIMAL,
    Verbosity.NORMAL,
    Verbosity.DETAILED,
    Verbosity.DIAGNOSTIC,
)
