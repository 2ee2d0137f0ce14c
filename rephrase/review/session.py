"""Review-round bookkeeping shared by the flashcard, fill-blank and multiple-choice drills."""
from __future__ import annotations

import random
from typing import Callable, List, Optional, Sequence

from .spaced_repetition import VocabItem

GENERIC_DISTRACTORS = (
    'to be very happy',
    'to feel anxious',
    'to work hard',
    'to rest peacefully',
    'to speak loudly',
)


class ReviewRoundError(Exception):
    pass


def display_meaning(item: VocabItem) -> str:
    return item.meaning_localized or item.meaning


def check_fill_blank(item: VocabItem, answer: str) -> bool:
    return answer.strip().lower() == item.word.strip().lower()


def build_choice_options(item: VocabItem, pool: Sequence[VocabItem], k: int = 3, rng: Optional[random.Random] = None) -> List[str]:
    """Correct meaning plus ``k`` distractors, shuffled.

    Distractors come from other items in ``pool``; generic phrases pad the
    list when the pool is too small.
    """
    rng = rng or random.Random()
    correct = display_meaning(item)
    candidates = sorted({display_meaning(i) for i in pool if i.id != item.id} - {correct})
    rng.shuffle(candidates)
    wrong = candidates[:k]
    spare = [g for g in GENERIC_DISTRACTORS if g != correct and g not in wrong]
    rng.shuffle(spare)
    wrong.extend(spare[:k - len(wrong)])
    options = [correct] + wrong
    rng.shuffle(options)
    return options


class ReviewRound:
    """Walks a session's items; each item accepts exactly one outcome.

    ``on_outcome(item_id, correct)`` is normally ``VocabBank.record_outcome``.
    """

    def __init__(self, items: Sequence[VocabItem], on_outcome: Callable[[str, bool], object]):
        self._items = list(items)
        self._on_outcome = on_outcome
        self._index = 0
        self.correct_count = 0

    @property
    def total(self) -> int:
        return len(self._items)

    @property
    def finished(self) -> bool:
        return self._index >= len(self._items)

    @property
    def current(self) -> VocabItem:
        if self.finished:
            raise ReviewRoundError('review round is finished')
        return self._items[self._index]

    @property
    def progress(self) -> float:
        return self._index / len(self._items) if self._items else 0.0

    def _answer(self, correct: bool) -> None:
        item = self.current
        self._on_outcome(item.id, correct)
        if correct:
            self.correct_count += 1
        self._index += 1

    def on_correct(self) -> None:
        self._answer(True)

    def on_wrong(self) -> None:
        self._answer(False)
