"""Prompt builders for sentence generation and translation evaluation."""
from __future__ import annotations

from typing import Sequence

CORRECTIVE_PREFIX = (
    'Your previous response was invalid JSON. Regenerate your answer strictly as a single valid JSON object, '
    'with no markdown, no code fences and no text before or after it.\n\n'
)


def _history_section(history: Sequence[str]) -> str:
    if not history:
        return ''
    listing = '\n'.join(f'- {s}' for s in history)
    return (
        '\n\nIMPORTANT - Do NOT generate any of these previously used sentences:\n'
        f'{listing}\n\n'
        'Generate a COMPLETELY DIFFERENT sentence with different vocabulary and structure.'
    )


def build_generation_prompt(topic: str, target_band: str, history: Sequence[str] = ()) -> str:
    return (
        'Generate a Vietnamese sentence for English translation practice.\n\n'
        f'Topic: {topic}\n'
        f'Target IELTS Band: {target_band}\n\n'
        'Requirements:\n'
        '- Natural Vietnamese sentence that a native speaker would say\n'
        f'- Complexity appropriate for someone aiming for Band {target_band}\n'
        '- Should allow for interesting vocabulary upgrades when translated\n'
        '- Include some idiomatic expressions or common phrases\n'
        f'- Be creative and varied in sentence structure{_history_section(history)}\n\n'
        'Return ONLY valid JSON (no markdown, no backticks):\n'
        '{\n'
        '  "vietnamese": "...",\n'
        f'  "topic": "{topic}",\n'
        f'  "targetBand": "{target_band}",\n'
        '  "hint": "brief grammar or vocabulary hint in Vietnamese",\n'
        '  "keyStructures": ["structure1", "structure2"]\n'
        '}'
    )


_FEEDBACK_SHAPE = '''{
  "overallBand": 6.5,
  "criteria": {
    "lexicalResource": {"band": 6.0, "comment": "Brief comment on vocabulary range and accuracy"},
    "grammaticalRange": {"band": 6.5, "comment": "Brief comment on grammar variety and accuracy"},
    "coherence": {"band": 7.0, "comment": "Brief comment on flow and logical connection"},
    "taskAchievement": {"band": 6.5, "comment": "Brief comment on meaning preservation and completeness"}
  },
  "goodPoints": ["point 1", "point 2"],
  "issues": [
    {"word": "tired", "criterion": "lexicalResource", "reason": "too basic for band 7+"}
  ],
  "upgrades": [
    {
      "original": "tired",
      "context": "I feel tired",
      "alternatives": [
        {"word": "drained", "pos": "adj", "meaning": "extremely tired", "example": "I feel completely drained after the meeting", "meaningVi": "kiệt sức", "bandLevel": "7.0+"}
      ]
    }
  ],
  "improvedSentence": "Band 7.5+ version preserving the original meaning",
  "explanation": "Brief explanation in Vietnamese focusing on key improvements needed to reach a higher band"
}'''


def build_evaluation_prompt(source_text: str, translation: str, target_band: str) -> str:
    return (
        'Evaluate this Vietnamese-to-English translation using official IELTS Writing criteria.\n\n'
        f'Vietnamese original: "{source_text}"\n'
        f'User\'s translation: "{translation}"\n'
        f'Target Band: {target_band}\n\n'
        'Score using IELTS band descriptors (0-9 scale, use .0 or .5 only):\n'
        '- Band 5.0-5.5: Limited - basic vocabulary, frequent errors, simple sentences\n'
        '- Band 6.0-6.5: Competent - adequate vocabulary, some errors, mix of simple/complex\n'
        '- Band 7.0-7.5: Good - wide vocabulary, good control, varied structures\n'
        '- Band 8.0-8.5: Very Good - wide range, rare errors, sophisticated structures\n'
        '- Band 9.0: Expert - full flexibility, complete accuracy, natural expression\n\n'
        'Return ONLY valid JSON (no markdown, no backticks):\n'
        f'{_FEEDBACK_SHAPE}\n\n'
        'Be encouraging but accurate to IELTS standards. Focus on vocabulary and grammar upgrades.'
    )


def build_explanation_prompt(source_text: str, translation: str, target_band: str) -> str:
    return (
        'Explain, in a few short paragraphs, how this translation could be improved to reach '
        f'IELTS Band {target_band}. Write the explanation in Vietnamese.\n\n'
        f'Vietnamese original: "{source_text}"\n'
        f'User\'s translation: "{translation}"'
    )


def with_correction(prompt: str) -> str:
    return CORRECTIVE_PREFIX + prompt
