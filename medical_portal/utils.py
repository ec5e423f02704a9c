import json
import logging
import re
from datetime import datetime, timezone

from flask import jsonify
from pydantic import ValidationError

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r'\s+')
_EXTENSION_RE = re.compile(r'\.[a-z0-9]+$', re.IGNORECASE)
AUTH_SCHEMES = ('Bearer ', 'Basic ', 'ASC ')


def get_now_utc():
    """Returns the current UTC time as a naive datetime (storage format)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value):
    """Formats a stored datetime like JavaScript's toISOString, so strings sort chronologically."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec='milliseconds') + 'Z'


def normalize(value):
    """Lowercases, trims and collapses whitespace. None becomes ''."""
    if value is None:
        return ''
    return _WHITESPACE_RE.sub(' ', str(value).strip().lower())


def strip_extension(title):
    """Drops a trailing '.ext' suffix, e.g. 'Consent Form.pdf' -> 'Consent Form'."""
    value = str(title or '').strip()
    if not value:
        return ''
    return _EXTENSION_RE.sub('', value)


def normalize_auth_header(value):
    if not value:
        return ''
    value = str(value)
    if value.startswith(AUTH_SCHEMES):
        return value
    return f"Bearer {value}"


def call_quietly(func, *args, default=None, **kwargs):
    """
    Calls a platform lookup and returns `default` instead of raising.
    Used where a missing folder/file/link must degrade to "no data".
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        logger.warning(f"{getattr(func, '__name__', 'lookup')} failed: {e}")
        return default


def api_error(error, details=None, status=500):
    """Standardized JSON error body for all API routes."""
    return jsonify({
        'error': error,
        'details': details,
        'status': status
    }), status


def error_response(exc):
    """Maps an exception raised inside a route to the standard error body."""
    if isinstance(exc, ValidationError):
        return api_error('Invalid request payload', details=json.loads(exc.json(include_url=False)), status=400)

    status = getattr(exc, 'status', None) or 500
    details = getattr(exc, 'details', None)
    message = getattr(exc, 'message', None) or str(exc) or 'Internal server error'
    return api_error(message, details=details, status=status)
