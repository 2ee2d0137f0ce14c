"""Saved vocabulary collection, persisted as one JSON blob."""
from __future__ import annotations

import json
import random
from datetime import datetime
from typing import Iterator, List, Optional

from pydantic import TypeAdapter, ValidationError

from rephrase.llm.schemas import Upgrade
from rephrase.storage import BlobStore
from rephrase.utils import get_logger
from .spaced_repetition import (
    DEFAULT_DUE_CAP_SIZE,
    DEFAULT_FALLBACK_SIZE,
    VocabItem,
    due_count,
    mastered_count,
    new_item,
    record_outcome,
    select_session,
)

LOG = get_logger()

VOCAB_BANK_KEY = 'vocabBank'
SCHEMA_VERSION = 2
DEFAULT_BAND = 6.0

_items_adapter = TypeAdapter(List[VocabItem])


class VocabBankError(Exception):
    pass


class VocabDecodeError(VocabBankError):
    pass


class VocabItemNotFound(VocabBankError, KeyError):
    pass


def encode_items(items: List[VocabItem]) -> bytes:
    payload = {
        'version': SCHEMA_VERSION,
        'items': [i.model_dump(mode='json', by_alias=True) for i in items],
    }
    return json.dumps(payload, ensure_ascii=False).encode('utf-8')


def decode_items(blob: bytes) -> List[VocabItem]:
    """Decode a stored collection.

    Version 1 blobs are a bare JSON list; version 2 wraps it as
    ``{"version": 2, "items": [...]}``. Missing optional fields get their
    defaults; missing required fields raise ``VocabDecodeError``.
    """
    try:
        data = json.loads(blob)
    except ValueError as e:
        raise VocabDecodeError(f'vocabulary blob is not JSON: {e}') from e
    if isinstance(data, dict):
        version = data.get('version')
        if version != SCHEMA_VERSION:
            raise VocabDecodeError(f'unsupported vocabulary schema version: {version!r}')
        data = data.get('items')
    try:
        return _items_adapter.validate_python(data)
    except ValidationError as e:
        raise VocabDecodeError(f'vocabulary blob failed validation: {e.error_count()} error(s)') from e


def band_value(level: str) -> float:
    try:
        return float(level.replace('+', '').strip())
    except (AttributeError, ValueError):
        return DEFAULT_BAND


class VocabBank:
    def __init__(self, store: BlobStore, key: str = VOCAB_BANK_KEY):
        self._store = store
        self._key = key
        self._items: List[VocabItem] = []

    @classmethod
    def load(cls, store: BlobStore, key: str = VOCAB_BANK_KEY) -> 'VocabBank':
        bank = cls(store, key)
        blob = store.get(key)
        if blob:
            bank._items = decode_items(blob)
        LOG.info('vocab_bank_loaded', extra={'count': len(bank._items)})
        return bank

    def save(self) -> None:
        self._store.set(self._key, encode_items(self._items))

    def __iter__(self) -> Iterator[VocabItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[VocabItem]:
        return list(self._items)

    def get(self, item_id: str) -> VocabItem:
        for item in self._items:
            if item.id == item_id:
                return item
        raise VocabItemNotFound(item_id)

    def contains_word(self, word: str) -> bool:
        return any(i.word == word for i in self._items)

    def add_upgrade(self, upgrade: Upgrade, now: Optional[datetime] = None) -> List[VocabItem]:
        """Save every alternative of ``upgrade``; words already in the bank are skipped."""
        added = []
        for alt in upgrade.alternatives:
            if self.contains_word(alt.word):
                continue
            item = new_item(
                word=alt.word,
                part_of_speech=alt.pos,
                meaning=alt.meaning,
                meaning_localized=alt.meaning_vi,
                example=alt.example,
                original_word=upgrade.original,
                context=upgrade.context,
                level=alt.band_level,
                now=now,
            )
            self._items.append(item)
            added.append(item)
        self.save()
        return added

    def remove(self, item_id: str) -> None:
        before = len(self._items)
        self._items = [i for i in self._items if i.id != item_id]
        if len(self._items) == before:
            raise VocabItemNotFound(item_id)
        self.save()

    def record_outcome(self, item_id: str, correct: bool, now: Optional[datetime] = None) -> VocabItem:
        for idx, item in enumerate(self._items):
            if item.id == item_id:
                updated = record_outcome(item, correct, now)
                self._items[idx] = updated
                self.save()
                return updated
        raise VocabItemNotFound(item_id)

    def session(self, now: Optional[datetime] = None, fallback_size: int = DEFAULT_FALLBACK_SIZE,
                due_cap_size: int = DEFAULT_DUE_CAP_SIZE, rng: Optional[random.Random] = None) -> List[VocabItem]:
        return select_session(self._items, now, fallback_size=fallback_size, due_cap_size=due_cap_size, rng=rng)

    def due_count(self, now: Optional[datetime] = None) -> int:
        return due_count(self._items, now)

    def mastered_count(self) -> int:
        return mastered_count(self._items)

    def sorted_by_band(self) -> List[VocabItem]:
        return sorted(self._items, key=lambda i: band_value(i.level), reverse=True)
