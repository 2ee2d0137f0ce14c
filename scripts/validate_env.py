import os
import sys
import argparse
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / '.env')

errors = []
warnings = []

parser = argparse.ArgumentParser(description='Validate RePhrase service environment')
parser.add_argument('--strict', '-s', action='store_true', help='Convert warnings to failures')
parser.add_argument('--ping', action='store_true', help='Also check the LLM endpoint and Redis are reachable')
args = parser.parse_args()
STRICT = args.strict

required = {
    'server': ['HOST', 'PORT'],
    'llm': ['OPENAI_API_KEY', 'OPENAI_BASE_URL', 'OPENAI_MODEL'],
}

def check_presence(cat, keys):
    for k in keys:
        if not os.getenv(k):
            errors.append(f"{cat}: Missing {k}")

for cat, keys in required.items():
    check_presence(cat, keys)

# Settings parse performs type and range checks for every field
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
from pydantic import ValidationError  # noqa: E402
from rephrase.config import Settings  # noqa: E402

settings = None
try:
    settings = Settings()
except ValidationError as e:
    for err in e.errors():
        loc = '.'.join(str(p) for p in err['loc'])
        errors.append(f"{loc}: {err['msg']}")

if settings is not None:
    if not 1 <= settings.PORT <= 65535:
        errors.append('PORT must be integer between 1 and 65535')

    from rephrase.llm.errors import LLMInvalidURLError  # noqa: E402
    from rephrase.llm.transport import validate_url  # noqa: E402
    try:
        validate_url(settings.OPENAI_BASE_URL)
    except LLMInvalidURLError as e:
        errors.append(f'OPENAI_BASE_URL: {e}')

    if settings.OPENAI_API_KEY and not settings.OPENAI_API_KEY.startswith('sk-'):
        warnings.append('OPENAI_API_KEY does not start with sk-; verify provider')

    for name in ('RESPONSE_CACHE_BACKEND', 'BLOB_STORE_BACKEND'):
        if getattr(settings, name) not in ('memory', 'redis'):
            errors.append(f'{name} must be memory|redis')

    if settings.LLM_MAX_RETRIES > 5:
        warnings.append('LLM_MAX_RETRIES above 5 multiplies provider cost on bad responses')

    if settings.ENVIRONMENT == 'production' and settings.CORS_ORIGIN.strip() == '*':
        warnings.append('CORS_ORIGIN is * in production')

if args.ping and settings is not None:
    uses_redis = 'redis' in (settings.RESPONSE_CACHE_BACKEND, settings.BLOB_STORE_BACKEND)
    if uses_redis:
        import redis
        try:
            if redis.from_url(settings.REDIS_URL).ping():
                print('Redis: OK')
        except redis.RedisError as e:
            warnings.append(f'Redis check failed: {e}')

    if settings.OPENAI_API_KEY:
        import httpx
        models_url = settings.OPENAI_BASE_URL.rsplit('/chat/completions', 1)[0] + '/models'
        try:
            r = httpx.get(models_url, headers={'Authorization': f'Bearer {settings.OPENAI_API_KEY}'}, timeout=10)
            if r.status_code == 200:
                print('LLM endpoint: reachable')
            else:
                warnings.append(f'LLM endpoint check returned HTTP {r.status_code}')
        except httpx.HTTPError as e:
            warnings.append(f'LLM endpoint check failed: {e}')

log_path = Path(os.getenv('LOG_FILE_PATH', 'logs'))
if os.getenv('LOG_TO_FILE', 'true').lower() in ('1', 'true', 'yes'):
    try:
        log_path.mkdir(parents=True, exist_ok=True)
        if not os.access(log_path, os.W_OK):
            errors.append(f'Log path not writable: {log_path}')
    except OSError as e:
        errors.append(f'Failed to create log dir {log_path}: {e}')

if errors:
    print('\nENV validation failed:')
    for e in errors:
        print(' -', e)
    sys.exit(1)

if warnings:
    print('\nWarnings:')
    for w in warnings:
        print(' -', w)
    if STRICT:
        print('\nStrict mode enabled: treating warnings as errors')
        sys.exit(1)

print('\nAll critical validations passed')
sys.exit(0)
