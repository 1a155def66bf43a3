"""Top-level package for the engagement analytics engine.

The engine turns raw per-message delivery/open/click records and subscriber
directory entries into a single engagement report: aggregates, signup
cohorts, churn tiers, behavioral segments, quality scores and
recommendations.  Subpackages split the pure computation (``analytics``)
from the HTTP surface (``api``).
"""

from __future__ import annotations

__all__ = [
    "analytics",
    "api",
    "settings",
]

# SemVer version of the package
__version__: str = "0.1.0"
