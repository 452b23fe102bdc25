"""Level banding from total score.

Levels are fixed 1000-point bands: 0-999 is level 1, 1000-1999 is level 2,
and so on. A user's stored level never goes down.
"""

from __future__ import annotations

SCORE_PER_LEVEL = 1000


def level_for_score(total_score: int) -> int:
    """Level implied by a total score."""
    return max(total_score, 0) // SCORE_PER_LEVEL + 1

