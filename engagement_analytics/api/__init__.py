"""HTTP surface of the analytics engine."""

from __future__ import annotations

__all__ = ["server"]
