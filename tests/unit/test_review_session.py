import random
from datetime import datetime, timezone

import pytest

from rephrase.review import ReviewRound, ReviewRoundError, VocabItem, build_choice_options, check_fill_blank
from rephrase.review.session import GENERIC_DISTRACTORS

NOW = datetime(2024, 3, 10, tzinfo=timezone.utc)


def item(word, meaning_vi=''):
    return VocabItem(
        id=f'id-{word}', word=word, part_of_speech='adj', meaning=f'meaning of {word}', meaning_localized=meaning_vi,
        example='ex', original_word='o', context='c', level='7.0', added_at=NOW, next_review_at=NOW, mastered=False,
    )


@pytest.mark.unit
def test_fill_blank_ignores_case_and_whitespace():
    assert check_fill_blank(item('Drained'), '  drained ')
    assert not check_fill_blank(item('drained'), 'drain')


@pytest.mark.unit
def test_choice_options_from_pool():
    pool = [item(w, f'vi-{w}') for w in ('a', 'b', 'c', 'd', 'e')]
    options = build_choice_options(pool[0], pool, rng=random.Random(3))
    assert len(options) == 4
    assert len(set(options)) == 4
    assert 'vi-a' in options
    assert set(options) <= {f'vi-{w}' for w in 'abcde'}


@pytest.mark.unit
def test_choice_options_padded_with_generic_distractors():
    target = item('a')
    options = build_choice_options(target, [target], rng=random.Random(0))
    assert len(options) == 4
    assert 'meaning of a' in options
    assert len([o for o in options if o in GENERIC_DISTRACTORS]) == 3


@pytest.mark.unit
def test_review_round_records_each_answer():
    outcomes = []
    rnd = ReviewRound([item('a'), item('b')], lambda item_id, correct: outcomes.append((item_id, correct)))
    assert rnd.total == 2
    assert rnd.current.word == 'a'
    rnd.on_correct()
    assert rnd.progress == 0.5
    rnd.on_wrong()
    assert rnd.finished
    assert outcomes == [('id-a', True), ('id-b', False)]
    assert rnd.correct_count == 1
    with pytest.raises(ReviewRoundError):
        rnd.on_correct()


@pytest.mark.unit
def test_empty_round_is_finished():
    rnd = ReviewRound([], lambda *a: None)
    assert rnd.finished
    assert rnd.progress == 0.0
