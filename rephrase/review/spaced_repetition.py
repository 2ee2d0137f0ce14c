"""Interval-ladder spaced repetition for saved vocabulary.

Intervals climb 1 -> 3 -> 7 -> 14 -> 30 -> 60 days on consecutive correct
answers; a wrong answer drops the item back to 1 day. The jump is decided by
which band the *current* interval falls in, so an item sitting at 4 days
goes to 7, not 14. Reaching the 60-day rung marks the item mastered.
"""
from __future__ import annotations

import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rephrase.utils import log_review_outcome

DAY_SECONDS = 24 * 60 * 60
INITIAL_INTERVAL_SECONDS = float(DAY_SECONDS)
MASTERY_INTERVAL_SECONDS = float(60 * DAY_SECONDS)

# (upper bound of current interval, next interval), both in days
INTERVAL_BANDS: Tuple[Tuple[float, float], ...] = (
    (2, 3),
    (5, 7),
    (10, 14),
    (20, 30),
)
TERMINAL_INTERVAL_DAYS = 60

DEFAULT_FALLBACK_SIZE = 10
DEFAULT_DUE_CAP_SIZE = 20


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # naive timestamps are taken to be UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class VocabItem(BaseModel):
    """One saved vocabulary suggestion and its review state.

    Aliases are the persisted field names; ``lastReviewedAt`` and
    ``reviewInterval`` default so collections saved before review scheduling
    existed still load.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    word: str
    part_of_speech: str = Field(alias='pos')
    meaning: str
    meaning_localized: str = Field(alias='meaningVi')
    example: str
    original_word: str = Field(alias='original')
    context: str
    level: str = Field(alias='bandLevel')
    added_at: datetime = Field(alias='addedAt')
    next_review_at: datetime = Field(alias='nextReview')
    last_reviewed_at: Optional[datetime] = Field(None, alias='lastReviewedAt')
    review_interval_seconds: float = Field(INITIAL_INTERVAL_SECONDS, alias='reviewInterval', gt=0)
    mastered: bool

    @field_validator('added_at', 'next_review_at', 'last_reviewed_at')
    @classmethod
    def ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @property
    def interval_days(self) -> float:
        return self.review_interval_seconds / DAY_SECONDS

    def is_due(self, now: datetime) -> bool:
        return self.next_review_at <= as_utc(now)


def new_item(word: str, part_of_speech: str, meaning: str, meaning_localized: str, example: str,
             original_word: str, context: str, level: str, now: Optional[datetime] = None) -> VocabItem:
    now = now or utcnow()
    return VocabItem(
        word=word,
        part_of_speech=part_of_speech,
        meaning=meaning,
        meaning_localized=meaning_localized,
        example=example,
        original_word=original_word,
        context=context,
        level=level,
        added_at=now,
        next_review_at=now + timedelta(seconds=INITIAL_INTERVAL_SECONDS),
        last_reviewed_at=None,
        review_interval_seconds=INITIAL_INTERVAL_SECONDS,
        mastered=False,
    )


def next_interval(current_seconds: float) -> Tuple[float, bool]:
    """Return ``(new_interval_seconds, mastered)`` after a correct answer."""
    current_days = current_seconds / DAY_SECONDS
    for upper, nxt in INTERVAL_BANDS:
        if current_days < upper:
            return float(nxt * DAY_SECONDS), False
    return float(TERMINAL_INTERVAL_DAYS * DAY_SECONDS), True


def record_outcome(item: VocabItem, correct: bool, now: Optional[datetime] = None) -> VocabItem:
    """Return a copy of ``item`` updated for one review answer."""
    now = as_utc(now) if now else utcnow()
    if correct:
        interval, mastered = next_interval(item.review_interval_seconds)
    else:
        interval, mastered = INITIAL_INTERVAL_SECONDS, False
    updated = item.model_copy(update={
        'review_interval_seconds': interval,
        'mastered': mastered,
        'next_review_at': now + timedelta(seconds=interval),
        'last_reviewed_at': now,
    })
    log_review_outcome(item.id, correct, updated.interval_days, mastered)
    return updated


def select_due(items: Iterable[VocabItem], now: Optional[datetime] = None) -> List[VocabItem]:
    now = now or utcnow()
    return [i for i in items if i.is_due(now)]


def select_session(
    items: Sequence[VocabItem],
    now: Optional[datetime] = None,
    fallback_size: int = DEFAULT_FALLBACK_SIZE,
    due_cap_size: int = DEFAULT_DUE_CAP_SIZE,
    rng: Optional[random.Random] = None,
) -> List[VocabItem]:
    """Pick the items for one review session, in random order.

    Due items come first (at most ``due_cap_size``); when nothing is due the
    session falls back to ``fallback_size`` items from the whole collection so
    a user with saved vocabulary always has something to practise.
    """
    rng = rng or random.Random()
    due = select_due(items, now)
    chosen = list(due[:due_cap_size]) if due else list(items[:fallback_size])
    rng.shuffle(chosen)
    return chosen


def mastered_count(items: Iterable[VocabItem]) -> int:
    return sum(1 for i in items if i.mastered)


def due_count(items: Iterable[VocabItem], now: Optional[datetime] = None) -> int:
    return len(select_due(items, now))
