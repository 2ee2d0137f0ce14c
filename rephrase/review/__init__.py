"""
Spaced repetition for saved vocabulary: interval ladder, due selection,
review sessions, vocabulary bank persistence and practice statistics.
"""

from .spaced_repetition import (
	VocabItem,
	new_item,
	next_interval,
	record_outcome,
	select_due,
	select_session,
	mastered_count,
	due_count,
	DAY_SECONDS,
)
from .vocab_bank import VocabBank, VocabBankError, VocabDecodeError, VocabItemNotFound, encode_items, decode_items
from .stats import UserStats, band_label, load_stats, save_stats
from .session import ReviewRound, ReviewRoundError, build_choice_options, check_fill_blank

__all__ = [
	'VocabItem',
	'new_item',
	'next_interval',
	'record_outcome',
	'select_due',
	'select_session',
	'mastered_count',
	'due_count',
	'DAY_SECONDS',
	'VocabBank',
	'VocabBankError',
	'VocabDecodeError',
	'VocabItemNotFound',
	'encode_items',
	'decode_items',
	'UserStats',
	'band_label',
	'load_stats',
	'save_stats',
	'ReviewRound',
	'ReviewRoundError',
	'build_choice_options',
	'check_fill_blank',
]
