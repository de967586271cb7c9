"""
Rubric scoring.

Turns an ordered list of criteria plus optional per-criterion scores into an
evaluation:

    {
        "criteria": [{"id", "name", "description", "max_score", "score"}, ...],
        "total_score": ...,
        "max_total_score": ...,
        "percentage": ...,
    }

Scores outside [0, max_score] are clamped, never rejected. An unset score
counts as 0 in the running total so drafts still show a meaningful number;
whether every criterion has been scored is reported by all_scored() and is
left to the caller's decision policy.
"""
import copy
import math
import numbers

from ..errors import BadRequest
from ..rubric_config import PASSING_PERCENTAGE, EXCELLENT_PERCENTAGE


def _to_number(value, field):
    if isinstance(value, bool):
        raise BadRequest(f"{field} must be a number")
    if isinstance(value, numbers.Number):
        return value
    if isinstance(value, str) and value.strip():
        try:
            num = float(value)
        except ValueError:
            raise BadRequest(f"{field} must be a number")
        return int(num) if num.is_integer() else num
    raise BadRequest(f"{field} must be a number")


def normalize_criterion(raw, index=0):
    """
    Accept a criterion in API shape (camelCase or snake_case) and return the
    internal dict. Raises BadRequest when max score is missing or not positive.
    """
    if not isinstance(raw, dict):
        raise BadRequest(f"Criterion {index + 1} must be an object")

    max_score = raw.get('max_score', raw.get('maxScore'))
    if max_score is None:
        raise BadRequest(f"Criterion {index + 1} is missing max_score")
    max_score = _to_number(max_score, f"Criterion {index + 1} max_score")
    if max_score <= 0:
        raise BadRequest(f"Criterion {index + 1} max_score must be positive")

    criterion = {
        "id": str(raw.get('id') or index + 1),
        "name": (raw.get('name') or '').strip(),
        "description": raw.get('description') or '',
        "max_score": max_score,
    }
    if 'score' in raw:
        criterion["score"] = raw.get('score')
    return criterion


def normalize_criteria(raw_criteria):
    if raw_criteria is None:
        return []
    if not isinstance(raw_criteria, (list, tuple)):
        raise BadRequest("criteria must be a list")
    return [normalize_criterion(c, i) for i, c in enumerate(raw_criteria)]


def clamp_score(score, max_score):
    """Clamp a score into [0, max_score]. None stays None."""
    if score is None:
        return None
    score = _to_number(score, "score")
    return min(max(0, score), max_score)


def round_percentage(value):
    # half-up, so 89.5 -> 90 rather than banker's rounding
    return int(math.floor(value + 0.5))


def _scores_for(criteria, scores):
    if scores is None:
        return [c.get('score') for c in criteria]
    if isinstance(scores, dict):
        return [scores.get(c['id']) for c in criteria]
    scores = list(scores)
    if len(scores) > len(criteria):
        raise BadRequest("More scores than criteria")
    return scores + [None] * (len(criteria) - len(scores))


def score_evaluation(criteria, scores=None):
    """
    Compute an evaluation from criteria and scores.

    Args:
        criteria: ordered criteria, each with a positive max score
        scores: optional list aligned with criteria, or dict keyed by
            criterion id. When omitted, each criterion's own "score" is used.

    Returns:
        Evaluation dict. Criteria are copied, never shared with the input.
    """
    criteria = normalize_criteria(criteria)
    values = _scores_for(criteria, scores)

    scored = []
    for criterion, value in zip(criteria, values):
        item = {k: v for k, v in criterion.items() if k != 'score'}
        item["score"] = clamp_score(value, criterion['max_score'])
        scored.append(item)

    max_total = sum(c['max_score'] for c in scored)
    total = sum(c['score'] or 0 for c in scored)
    percentage = round_percentage(total / max_total * 100) if max_total > 0 else 0

    return {
        "criteria": scored,
        "total_score": total,
        "max_total_score": max_total,
        "percentage": percentage,
    }


def evaluation_from_payload(payload):
    """
    Build an evaluation from a request body.

    Totals supplied by the client are ignored and recomputed from the
    criteria so the stored numbers always agree with the scores.
    """
    if payload is None:
        return None
    if not isinstance(payload, dict):
        raise BadRequest("evaluation must be an object")
    criteria = payload.get('criteria')
    if not criteria:
        raise BadRequest("evaluation needs at least one criterion")
    return score_evaluation(criteria)


def reset_evaluation(evaluation):
    """Clear every score, keeping the criteria and max total."""
    criteria = copy.deepcopy(evaluation.get('criteria', []))
    return score_evaluation(criteria, [None] * len(criteria))


def all_scored(evaluation) -> bool:
    """True once every criterion carries a score."""
    criteria = evaluation.get('criteria', []) if evaluation else []
    return bool(criteria) and all(c.get('score') is not None for c in criteria)


def is_passing(percentage) -> bool:
    """Informational classification; never changes a portfolio's status."""
    return percentage >= PASSING_PERCENTAGE


def grade_band(percentage):
    """Bucket used by statistics: excellent, good or needs_improvement."""
    if percentage >= EXCELLENT_PERCENTAGE:
        return "excellent"
    if percentage >= PASSING_PERCENTAGE:
        return "good"
    return "needs_improvement"


def summarize(evaluation):
    """Evaluation plus the derived readiness flags used by the review screen."""
    ready = all_scored(evaluation)
    return {
        **evaluation,
        "all_scored": ready,
        "passing": is_passing(evaluation['percentage']) if ready else None,
    }
