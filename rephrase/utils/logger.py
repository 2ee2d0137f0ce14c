import os
import sys
import logging
import pathlib
import contextvars
from logging.handlers import RotatingFileHandler
from pythonjsonlogger import jsonlogger

_request_ctx_var = contextvars.ContextVar('request_ctx', default={})


def set_request_context(request_id: str, user_id: str = None):
    _request_ctx_var.set({'request_id': request_id, 'user_id': user_id})


def get_request_context():
    return _request_ctx_var.get()


def _inject_request_context(record):
    ctx = get_request_context()
    record.request_id = ctx.get('request_id')
    record.user_id = ctx.get('user_id')
    return True


def get_logger(name: str = 'rephrase'):
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')
    LOG_FILE_PATH = os.getenv('LOG_FILE_PATH', 'logs')
    LOG_MAX_SIZE = int(os.getenv('LOG_MAX_SIZE', str(10 * 1024 * 1024)))
    LOG_MAX_FILES = int(os.getenv('LOG_MAX_FILES', '7'))
    # file handlers are skipped under test so runs don't litter the tree
    LOG_TO_FILE = os.getenv('LOG_TO_FILE', 'false' if os.getenv('TESTING') else 'true').lower() in ('1', 'true', 'yes')

    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(LOG_LEVEL.upper())

    ch = logging.StreamHandler(sys.stdout)
    if LOG_FORMAT == 'json':
        fmt = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s')
    else:
        fmt = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if LOG_TO_FILE:
        log_path = pathlib.Path(LOG_FILE_PATH)
        if not log_path.is_absolute():
            log_path = pathlib.Path(os.getcwd()) / log_path
        log_path.mkdir(parents=True, exist_ok=True)

        combined = RotatingFileHandler(log_path / 'combined.log', maxBytes=LOG_MAX_SIZE, backupCount=LOG_MAX_FILES)
        combined.setFormatter(fmt)
        logger.addHandler(combined)

        errors = RotatingFileHandler(log_path / 'error.log', maxBytes=LOG_MAX_SIZE, backupCount=LOG_MAX_FILES)
        errors.setLevel(logging.ERROR)
        errors.setFormatter(fmt)
        logger.addHandler(errors)

    f = logging.Filter()
    f.filter = _inject_request_context
    logger.addFilter(f)

    logging.captureWarnings(True)

    return logger


def log_request(request_id: str, method: str, path: str, status_code: int, duration_ms: float, ip: str = None):
    logger = get_logger()
    logger.info('http_request', extra={'request_id': request_id, 'method': method, 'path': path, 'status_code': status_code, 'duration_ms': duration_ms, 'ip': ip})


def log_error(error: Exception, context: dict = None):
    logger = get_logger()
    logger.error('error', exc_info=error, extra=context or {})


def log_llm_call(model: str, attempt: int, duration_ms: float, status_code: int = None, outcome: str = 'ok', streamed: bool = False):
    logger = get_logger()
    logger.info('llm_call', extra={'model': model, 'attempt': attempt, 'duration_ms': duration_ms, 'status_code': status_code, 'outcome': outcome, 'streamed': streamed})


def log_cache_event(event: str, key: str, backend: str = 'memory', ttl: float = None):
    logger = get_logger()
    logger.info('response_cache', extra={'event': event, 'key': key, 'backend': backend, 'ttl': ttl})


def log_generation(topic: str, target_band: str, duration_ms: float, prefetched: bool = False, history_size: int = 0):
    logger = get_logger()
    logger.info('sentence_generation', extra={
        'topic': topic,
        'target_band': target_band,
        'duration_ms': duration_ms,
        'prefetched': prefetched,
        'history_size': history_size,
    })


def log_evaluation(target_band: str, overall_band: float, upgrade_count: int, duration_ms: float):
    logger = get_logger()
    logger.info('translation_evaluation', extra={
        'target_band': target_band,
        'overall_band': overall_band,
        'upgrade_count': upgrade_count,
        'duration_ms': duration_ms,
    })


def log_review_outcome(item_id: str, correct: bool, interval_days: float, mastered: bool):
    logger = get_logger()
    logger.info('review_outcome', extra={
        'item_id': item_id,
        'correct': correct,
        'interval_days': interval_days,
        'mastered': mastered,
    })
