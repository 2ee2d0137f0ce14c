import pytest
from pydantic import ValidationError

from rephrase.llm import Feedback, LLMSchemaError, LLMValidationError, Sentence, parse_payload
from tests.fixtures.sample_data import SAMPLE_FEEDBACK, feedback_json, sentence_json


@pytest.mark.unit
def test_sentence_parses_camel_case_and_gets_id():
    s = parse_payload(Sentence, sentence_json())
    assert s.target_band == '6.5'
    assert s.key_structures == ['present perfect continuous', 'so + clause']
    assert s.id
    assert s.model_dump(by_alias=True)['keyStructures'] == s.key_structures


@pytest.mark.unit
def test_numeric_target_band_becomes_label():
    s = parse_payload(Sentence, sentence_json(targetBand=7))
    assert s.target_band == '7.0'


@pytest.mark.unit
def test_empty_vietnamese_is_schema_error():
    with pytest.raises(LLMSchemaError):
        parse_payload(Sentence, sentence_json(vietnamese=''))


@pytest.mark.unit
def test_missing_field_is_schema_error():
    with pytest.raises(LLMSchemaError) as ei:
        parse_payload(Sentence, '{"vietnamese": "Xin chào"}')
    assert ei.value.raw == '{"vietnamese": "Xin chào"}'


@pytest.mark.unit
def test_invalid_json_is_validation_error_not_schema_error():
    with pytest.raises(LLMValidationError) as ei:
        parse_payload(Sentence, 'not json')
    assert not isinstance(ei.value, LLMSchemaError)


@pytest.mark.unit
def test_feedback_bands_snap_to_half():
    fb = parse_payload(Feedback, feedback_json(overallBand=6.3))
    assert fb.overall_band == 6.5
    assert fb.criteria.lexical_resource.band == 6.0
    assert fb.upgrades[0].alternatives[0].meaning_vi == 'kiệt sức'


@pytest.mark.unit
def test_feedback_band_out_of_range_rejected():
    with pytest.raises(ValidationError):
        Feedback.model_validate(dict(SAMPLE_FEEDBACK, overallBand=9.5))


@pytest.mark.unit
def test_upgrade_requires_an_alternative():
    data = dict(SAMPLE_FEEDBACK, upgrades=[{'original': 'tired', 'context': 'I feel tired', 'alternatives': []}])
    with pytest.raises(ValidationError):
        Feedback.model_validate(data)
