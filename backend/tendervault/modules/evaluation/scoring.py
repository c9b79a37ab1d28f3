from __future__ import annotations

from typing import Any

SCORE_MIN, SCORE_MAX = 1, 10
NOTES_MAX = 1000


def score_summary(bid: dict[str, Any]) -> tuple[float | None, int]:
    """Mean of every evaluator's score (2 decimals) and the number of evaluators."""
    scores_map = bid.get("evaluationScores")
    if not isinstance(scores_map, dict):
        return None, 0
    scores: list[float] = []
    for entry in scores_map.values():
        if isinstance(entry, dict) and isinstance(entry.get("score"), (int, float)):
            scores.append(float(entry["score"]))
    if not scores:
        return None, 0
    return round(sum(scores) / len(scores), 2), len(scores)


def with_score_summary(bid: dict[str, Any]) -> dict[str, Any]:
    avg, count = score_summary(bid)
    return {**bid, "averageScore": avg, "scoreCount": count}
