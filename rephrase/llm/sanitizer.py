"""Cleanup of free-form model output before JSON validation."""
import re

_LEADING_FENCE = re.compile(r'^```[\w+-]*[ \t]*\n?', re.IGNORECASE)
_TRAILING_FENCE = re.compile(r'\n?[ \t]*```$')


def clean(raw: str) -> str:
    """Strip Markdown code fences and surrounding chatter from a model reply.

    Leading/trailing fences (```json, ```JSON, bare ```) are removed. If the
    remaining text contains both ``{`` and ``}``, it is cut down to the span
    from the first ``{`` to the last ``}``. Text without braces comes back
    as-is (trimmed) so downstream JSON parsing fails explicitly.
    """
    if not raw:
        return ''
    result = raw.strip()
    result = _LEADING_FENCE.sub('', result, count=1)
    result = _TRAILING_FENCE.sub('', result, count=1)

    start = result.find('{')
    end = result.rfind('}')
    if start != -1 and end > start:
        result = result[start:end + 1]

    return result.strip()
