"""RePhrase core: resilient LLM request client and spaced-repetition scheduler."""

__version__ = '1.0.0'
