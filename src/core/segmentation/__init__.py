"""Unicode boundary detection consumed by the counting engine."""

from .oracle import NEWLINES, BoundaryOracle, UnicodeBoundaryOracle, WordToken

__all__ = ["NEWLINES", "BoundaryOracle", "UnicodeBoundaryOracle", "WordToken"]
