"""Bounded quality scoring for content items (templates, campaigns).

Two independent scores are combined by taking the larger one:

* a heuristic score built from presentation and usage signals, and
* the Wilson lower confidence bound of a binary outcome ratio
  (positive ratings, unique opens per send, ...).

The Wilson bound keeps an item with 1 positive out of 1 below an item with
40 out of 50: small samples are penalised relative to the raw ratio.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple, Union

import numpy as np

ArrayLike = Union[float, int, Sequence[float], np.ndarray]

# z-scores of the supported two-sided confidence levels
_Z_SCORES = {0.95: 1.96, 0.99: 2.576}

BASE_SCORE = 50.0

TIER_THRESHOLDS: Tuple[Tuple[float, str, str], ...] = (
    (85.0, "Excellent", "High-quality content ready for promotion"),
    (70.0, "Good", "Quality content suitable for wide use"),
    (55.0, "Fair", "Acceptable quality, may need minor improvements"),
)
POOR = ("Poor", "Requires significant improvements")


@dataclass(frozen=True)
class QualitySignals:
    """Heuristic inputs describing a content item."""

    has_thumbnail: bool = False
    description: str = ""
    tag_count: int = 0
    has_category: bool = False
    downloads: int = 0
    views: int = 0
    favorites: int = 0

    @property
    def conversion_rate(self) -> float:
        return self.downloads / self.views if self.views > 0 else 0.0


@dataclass(frozen=True)
class QualityScore:
    score: float
    tier: str
    description: str
    heuristic: float
    wilson: float

    def as_dict(self) -> dict[str, object]:
        return {
            "score": self.score,
            "tier": self.tier,
            "description": self.description,
            "heuristic": self.heuristic,
            "wilson": self.wilson,
        }


def _clamp(value: float) -> float:
    return float(min(100.0, max(0.0, value)))


def wilson_lower_bound(
    positive: ArrayLike,
    total: ArrayLike,
    confidence: float = 0.95,
) -> Union[float, np.ndarray]:
    """Return the Wilson lower bound of ``positive/total`` scaled to [0, 100].

    Works on scalars or arrays.  A zero ``total`` scores 0.
    """
    if confidence not in _Z_SCORES:
        raise ValueError(f"Unsupported confidence level: {confidence}")
    z = _Z_SCORES[confidence]

    n = np.asarray(total, dtype=float)
    pos = np.asarray(positive, dtype=float)
    safe_n = np.where(n > 0, n, 1.0)
    p = np.clip(pos / safe_n, 0.0, 1.0)

    z2 = z * z
    numerator = p + z2 / (2 * safe_n) - z * np.sqrt((p * (1 - p) + z2 / (4 * safe_n)) / safe_n)
    denominator = 1 + z2 / safe_n
    score = np.where(n > 0, np.clip(numerator / denominator * 100.0, 0.0, 100.0), 0.0)

    if score.ndim == 0:
        return float(score)
    return score


def heuristic_score(signals: Optional[QualitySignals] = None) -> float:
    """Additive score starting at 50; may exceed 100 before clamping."""
    s = signals or QualitySignals()
    score = BASE_SCORE
    if s.has_thumbnail:
        score += 10
    if s.description and len(s.description) > 50:
        score += 5
    if s.tag_count > 0:
        score += 5
    if s.has_category:
        score += 5
    if s.downloads > 10:
        score += 10
    if s.views > 100:
        score += 5
    if s.favorites > 5:
        score += 10

    conversion = s.conversion_rate
    if conversion > 0.1:
        score += 10
    if conversion > 0.05:
        score += 5
    return score


def quality_score(
    positive: int,
    total: int,
    signals: Optional[QualitySignals] = None,
) -> float:
    """Final score: ``max(heuristic, wilson)`` clamped to [0, 100].

    The Wilson part only takes part when there is at least one outcome.
    """
    score = heuristic_score(signals)
    if total > 0:
        score = max(score, float(wilson_lower_bound(positive, total)))
    return _clamp(score)


def quality_tier(score: float) -> str:
    return _describe(score)[0]


def _describe(score: float) -> Tuple[str, str]:
    for threshold, tier, description in TIER_THRESHOLDS:
        if score >= threshold:
            return tier, description
    return POOR


def positive_from_ratings(ratings: Mapping[Union[str, int], int]) -> Tuple[int, int]:
    """Turn a star-rating histogram into ``(positive, total)``.

    Four and five star ratings count as positive.
    """
    counts = {str(k): int(v or 0) for k, v in ratings.items()}
    total = sum(counts.values())
    positive = counts.get("4", 0) + counts.get("5", 0)
    return positive, total


def score_content(
    positive: int = 0,
    total: int = 0,
    signals: Optional[QualitySignals] = None,
) -> QualityScore:
    heuristic = heuristic_score(signals)
    wilson = float(wilson_lower_bound(positive, total)) if total > 0 else 0.0
    score = quality_score(positive, total, signals)
    tier, description = _describe(score)
    return QualityScore(
        score=score,
        tier=tier,
        description=description,
        heuristic=heuristic,
        wilson=wilson,
    )
