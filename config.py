import logging
import os
import json
from typing import Any
from dotenv import load_dotenv

load_dotenv('.env')
load_dotenv('.env.local', override=True)

logger = logging.getLogger(__name__)

CONFIG_FILE = 'data/config.json'

DEFAULT_BITLY_API_URL = 'https://api-ssl.bitly.com/v4/shorten'
DEFAULT_TELEX_API_URL = 'https://api.telex.im'
DEFAULT_INTEGRATION_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'integration.json')

EXTRACT_MODES = ('pattern', 'markup')

CONFIG_KEYS = (
    'BITLY_ACCESS_TOKEN', 'BITLY_API_URL', 'TELEX_API_URL', 'HOST', 'PORT', 'EXTRACT_MODE',
    'SHORTEN_TIMEOUT', 'MAX_CONCURRENT_SHORTENS', 'RELAY_ENABLED', 'RELAY_TIMEOUT',
    'REQUIRE_CHANNEL_ID', 'INTEGRATION_FILE',
)


def _safe_int(value: Any, default: int) -> int:
    """Safely convert value to int, returning default on failure"""
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _safe_float(value: Any, default: float) -> float:
    """Safely convert value to a positive float, returning default on failure"""
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if result > 0 else default


def _safe_bool(value: Any, default: bool) -> bool:
    """Safely convert value to bool, returning default on failure.

    Accepts: True/False (bool), 'true'/'false'/'1'/'0' (str), 1/0 (int).
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes')
    return default


def _extract_mode(value: Any) -> str:
    mode = str(value or '').strip().lower()
    if mode not in EXTRACT_MODES:
        if mode:
            logger.warning('Unknown EXTRACT_MODE %r, falling back to pattern', value)
        return 'pattern'
    return mode


def _coerce(config: dict[str, Any]) -> dict[str, Any]:
    """Apply types and defaults to raw values from env or the config file"""
    config['BITLY_ACCESS_TOKEN'] = str(config.get('BITLY_ACCESS_TOKEN') or '')
    config['BITLY_API_URL'] = str(config.get('BITLY_API_URL') or DEFAULT_BITLY_API_URL)
    config['TELEX_API_URL'] = str(config.get('TELEX_API_URL') or DEFAULT_TELEX_API_URL)
    config['HOST'] = str(config.get('HOST') or '0.0.0.0')
    config['PORT'] = _safe_int(config.get('PORT'), 4000)
    config['EXTRACT_MODE'] = _extract_mode(config.get('EXTRACT_MODE'))
    config['SHORTEN_TIMEOUT'] = _safe_float(config.get('SHORTEN_TIMEOUT'), 10.0)
    config['MAX_CONCURRENT_SHORTENS'] = max(_safe_int(config.get('MAX_CONCURRENT_SHORTENS'), 10), 0)
    config['RELAY_ENABLED'] = _safe_bool(config.get('RELAY_ENABLED'), True)
    config['RELAY_TIMEOUT'] = _safe_float(config.get('RELAY_TIMEOUT'), 10.0)
    config['REQUIRE_CHANNEL_ID'] = _safe_bool(config.get('REQUIRE_CHANNEL_ID'), True)
    config['INTEGRATION_FILE'] = str(config.get('INTEGRATION_FILE') or DEFAULT_INTEGRATION_FILE)
    return config


def load_config() -> dict[str, Any]:
    """Load configuration from environment, overlaid with the config file.

    File values go through the same coercion as environment values.
    """
    config = {key: os.getenv(key) for key in CONFIG_KEYS}

    # Load from config file if exists
    if os.path.exists(CONFIG_FILE):
        try:
            with open(CONFIG_FILE, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error('Failed to load config file: %s', e)
        else:
            if isinstance(file_config, dict):
                config.update(file_config)
            else:
                logger.error('Ignoring config file %s: top level must be an object', CONFIG_FILE)

    return _coerce(config)


def is_configured(config: dict[str, Any] | None = None) -> bool:
    """Check if a shortening provider token is available"""
    config = config if config is not None else load_config()
    return bool(config.get('BITLY_ACCESS_TOKEN'))
