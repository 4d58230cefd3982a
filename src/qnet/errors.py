"""Exception types raised by the network simulator."""

from __future__ import annotations


class QNetError(ValueError):
    """Base class for configuration errors that abort a run."""


class InvalidParameters(QNetError):
    """A distribution or run parameter is outside its domain."""


class UnsupportedDistribution(QNetError):
    """The requested distribution name is not one of the supported kinds."""

    def __init__(self, kind: str):
        super().__init__(f"Distribution type not supported: {kind!r}")
        self.kind = kind


class InvalidRoutingTable(QNetError):
    """A routing row is negative, sums above one, or names an unknown node."""
