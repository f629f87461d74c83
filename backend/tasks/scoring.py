"""
Priority Scoring Engine for the Priority Task Manager.

This module holds the rules by which a task's per-category ratings, the
configurable category weights and the task's due date combine into a single
priority score. Everything here is pure: no database access, no logging,
no clock reads. Callers pass ``now`` explicitly so that the same inputs
always give the same score.

Scoring Formula:
---------------
weighted_sum  = sum(rating[c] * c.weight for c in categories)
total_weight  = sum(c.weight for c in categories)
base_score    = weighted_sum if total_weight > 0 else 0
urgency_bonus = tier(ceil((due_date - now) / 1 day))   (only if total_weight > 0)
priority      = round(base_score + urgency_bonus, 1)

Urgency tiers (days until due -> bonus):
    <= 1  -> 20   (includes due today and overdue)
    <= 3  -> 15
    <= 7  -> 10
    <= 14 -> 5
    else  -> 0

Ratings are integers in [0, 5]; a category without a rating counts as 0 and
ratings for categories outside the supplied set are ignored. Out-of-range
ratings are rejected, never clamped.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import ValidationError


# ==================== Constants ====================

MIN_RATING = 0
MAX_RATING = 5
MIN_WEIGHT = 0
MAX_WEIGHT = 100
MAX_TOTAL_WEIGHT = 100

SECONDS_PER_DAY = 24 * 60 * 60

# (max days until due, bonus) checked in order
URGENCY_BONUS_TIERS = (
    (1, 20),
    (3, 15),
    (7, 10),
    (14, 5),
)

CATEGORY_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{1,50}$')
HEX_COLOR_PATTERN = re.compile(r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')

MAX_DISPLAY_NAME_LENGTH = 100

# Canonical default seed set; weights sum to 100.
DEFAULT_CATEGORIES = [
    {'id': 'impact', 'display_name': 'Impact', 'secondary_name': 'השפעה',
     'weight': 25, 'color': '#FF6B6B'},
    {'id': 'urgency', 'display_name': 'Urgency', 'secondary_name': 'דחיפות',
     'weight': 20, 'color': '#4ECDC4'},
    {'id': 'effort', 'display_name': 'Effort Required', 'secondary_name': 'מאמץ נדרש',
     'weight': 15, 'color': '#45B7D1'},
    {'id': 'alignment', 'display_name': 'Goal Alignment', 'secondary_name': 'התאמה למטרות',
     'weight': 15, 'color': '#96CEB4'},
    {'id': 'learning', 'display_name': 'Learning Value', 'secondary_name': 'ערך לימודי',
     'weight': 10, 'color': '#FFEAA7'},
    {'id': 'enjoyment', 'display_name': 'Enjoyment', 'secondary_name': 'הנאה',
     'weight': 10, 'color': '#DDA0DD'},
    {'id': 'risk', 'display_name': 'Risk Level', 'secondary_name': 'רמת סיכון',
     'weight': 5, 'color': '#FFB6C1'},
]


# ==================== Value Objects ====================

@dataclass(frozen=True)
class CategoryWeight:
    """
    Minimal view of a category as seen by the engine.

    The ``Category`` model exposes the same ``slug`` and ``weight``
    attributes, so model instances can be passed wherever this is accepted.
    """
    slug: str
    weight: float


@dataclass
class WeightCheck:
    """Result of checking a set of categories against the 100% cap."""
    total_weight: float
    ok: bool

    def to_dict(self) -> Dict:
        return {'total_weight': self.total_weight, 'is_valid': self.ok}


@dataclass
class CategoryContribution:
    slug: str
    rating: int
    weight: float

    @property
    def contribution(self) -> float:
        return self.rating * self.weight


@dataclass
class ScoreBreakdown:
    """Detailed breakdown of how a task's score was calculated."""
    contributions: List[CategoryContribution] = field(default_factory=list)
    total_weight: float = 0.0
    days_until_due: Optional[int] = None
    urgency_bonus: int = 0
    score: float = 0.0

    @property
    def base_score(self) -> float:
        if self.total_weight <= 0:
            return 0.0
        return sum(c.contribution for c in self.contributions)

    def to_dict(self) -> Dict:
        return {
            'categories': {
                c.slug: {
                    'rating': c.rating,
                    'weight': c.weight,
                    'contribution': round(c.contribution, 2),
                }
                for c in self.contributions
            },
            'total_weight': self.total_weight,
            'base_score': round(self.base_score, 2),
            'days_until_due': self.days_until_due,
            'urgency_bonus': self.urgency_bonus,
            'score': self.score,
        }


# ==================== Validation ====================

def validate_rating(category_id: str, value) -> int:
    """Return ``value`` as an int in [0, 5] or raise ``ValidationError``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(
            f"Invalid rating for {category_id}. Must be an integer between 0 and 5",
            field=f'priority_ratings.{category_id}'
        )
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(
                f"Invalid rating for {category_id}. Must be an integer between 0 and 5",
                field=f'priority_ratings.{category_id}'
            )
        value = int(value)
    if value < MIN_RATING or value > MAX_RATING:
        raise ValidationError(
            f"Invalid rating for {category_id}. Must be between 0 and 5",
            field=f'priority_ratings.{category_id}'
        )
    return value


def validate_ratings(ratings: Optional[Mapping]) -> Dict[str, int]:
    """
    Normalize a rating mapping keyed by category id.

    ``None`` is treated as an empty mapping. Anything else that is not a
    mapping, a key that is not a valid category id, or a value outside
    [0, 5] raises ``ValidationError``.
    """
    if ratings is None:
        return {}
    if not isinstance(ratings, Mapping):
        raise ValidationError(
            "Priority ratings must be an object keyed by category id",
            field='priority_ratings'
        )

    validated = {}
    for category_id, value in ratings.items():
        if not isinstance(category_id, str) or not CATEGORY_ID_PATTERN.match(category_id):
            raise ValidationError(
                f"Invalid category id in priority ratings: {category_id!r}",
                field='priority_ratings'
            )
        validated[category_id] = validate_rating(category_id, value)
    return validated


def validate_weight(weight, field_name: str = 'weight') -> float:
    if isinstance(weight, bool) or not isinstance(weight, (int, float)):
        raise ValidationError("Weight must be a number between 0 and 100", field=field_name)
    if math.isnan(weight) or weight < MIN_WEIGHT or weight > MAX_WEIGHT:
        raise ValidationError("Weight must be between 0 and 100", field=field_name)
    return weight


def validate_category_fields(
    category_id: str,
    display_name: str,
    weight,
    color: str,
    secondary_name: Optional[str] = None
) -> None:
    """Shape checks shared by category create and update."""
    if not isinstance(category_id, str) or not CATEGORY_ID_PATTERN.match(category_id):
        raise ValidationError(
            "Category ID must be 1-50 characters of letters, numbers, hyphens and underscores",
            field='id'
        )
    if not isinstance(display_name, str) or not display_name.strip():
        raise ValidationError("Display name is required", field='display_name')
    if len(display_name.strip()) > MAX_DISPLAY_NAME_LENGTH:
        raise ValidationError(
            "Display name cannot exceed 100 characters", field='display_name'
        )
    if secondary_name and len(secondary_name.strip()) > MAX_DISPLAY_NAME_LENGTH:
        raise ValidationError(
            "Secondary name cannot exceed 100 characters", field='secondary_name'
        )
    validate_weight(weight)
    if not isinstance(color, str) or not HEX_COLOR_PATTERN.match(color):
        raise ValidationError(
            "Color must be a valid hex color (e.g., #FF0000)", field='color'
        )


def sum_weights(weights: Iterable) -> float:
    """
    Add weights as the decimals they were entered as.

    Each float is taken at its shortest round-tripping decimal form, so
    0.2 + 83.9 + 15.9 totals exactly 100 rather than 100.00000000000001.
    """
    total = sum((Decimal(repr(float(w))) for w in weights), Decimal(0))
    return float(total)


def validate_total(categories: Iterable) -> WeightCheck:
    """Sum the weights of ``categories`` and check them against the cap."""
    total = sum_weights(c.weight for c in categories)
    return WeightCheck(total_weight=total, ok=total <= MAX_TOTAL_WEIGHT)


# ==================== Dates ====================

def _as_datetime(value, reference: Optional[datetime] = None) -> datetime:
    """Promote a date to midnight, borrowing ``reference``'s timezone."""
    tzinfo = reference.tzinfo if reference is not None else None
    if isinstance(value, datetime):
        if value.tzinfo is None and tzinfo is not None:
            return value.replace(tzinfo=tzinfo)
        return value
    return datetime.combine(value, time.min, tzinfo=tzinfo)


def days_until_due(due_date, now) -> Optional[int]:
    """
    Whole days until ``due_date``, rounded up.

    A task due later today is 1 day away; a task due at midnight today,
    or any time in the past, is 0 or negative.
    """
    if due_date is None:
        return None
    now = _as_datetime(now)
    due = _as_datetime(due_date, now)
    return math.ceil((due - now).total_seconds() / SECONDS_PER_DAY)


def urgency_bonus(days: Optional[int]) -> int:
    if days is None:
        return 0
    for max_days, bonus in URGENCY_BONUS_TIERS:
        if days <= max_days:
            return bonus
    return 0


def is_overdue(due_date, completed: bool, now) -> bool:
    """Past due by at least one whole day and not completed."""
    if due_date is None or completed:
        return False
    return days_until_due(due_date, now) < 0


# ==================== Scoring ====================

def explain_score(
    ratings: Optional[Mapping],
    categories: Iterable,
    due_date: Optional[date],
    now
) -> ScoreBreakdown:
    """
    Compute the priority score and keep every intermediate value.

    ``categories`` are the categories in the task owner's scope; anything
    with ``slug`` and ``weight`` attributes works.
    """
    ratings = validate_ratings(ratings)
    breakdown = ScoreBreakdown()

    for category in categories:
        rating = ratings.get(category.slug, 0)
        breakdown.contributions.append(
            CategoryContribution(category.slug, rating, category.weight)
        )
    breakdown.total_weight = sum_weights(c.weight for c in breakdown.contributions)

    breakdown.days_until_due = days_until_due(due_date, now)

    if breakdown.total_weight > 0:
        breakdown.urgency_bonus = urgency_bonus(breakdown.days_until_due)
        score = breakdown.base_score + breakdown.urgency_bonus
    else:
        score = 0.0

    breakdown.score = round(score, 1)
    return breakdown


def compute_score(
    ratings: Optional[Mapping],
    categories: Iterable,
    due_date: Optional[date],
    now
) -> float:
    """Return the priority score for one task. Deterministic for fixed inputs."""
    return explain_score(ratings, categories, due_date, now).score
