"""
Request hardening for the report API.

CSRF tokens and rate limits come from Flask-WTF and Flask-Limiter. The
rest is local: response headers, stripping markup out of patched text
and working out who is calling.
"""

import re
from datetime import timedelta
from typing import Any, Optional

from flask import request, session
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_wtf.csrf import CSRFProtect


csrf = CSRFProtect()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"]
)

# Applied only where the app config leaves them unset
SECURE_SESSION_DEFAULTS = {
    'SESSION_COOKIE_SECURE': True,
    'SESSION_COOKIE_HTTPONLY': True,
    'SESSION_COOKIE_SAMESITE': 'Lax',
    'PERMANENT_SESSION_LIFETIME': timedelta(hours=8),
    'WTF_CSRF_TIME_LIMIT': 3600,
    'WTF_CSRF_SSL_STRICT': True,
}

RESPONSE_HEADERS = {
    # JSON only: nothing may be loaded or framed
    'Content-Security-Policy': "default-src 'none'; frame-ancestors 'none'",
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
    # Reports carry CNICs and phone numbers
    'Cache-Control': 'no-store',
}


def add_security_headers(response):
    """Stamp the hardening headers onto a response (after_request hook)."""
    for name, value in RESPONSE_HEADERS.items():
        response.headers[name] = value
    return response


def init_security(app):
    for key, value in SECURE_SESSION_DEFAULTS.items():
        app.config.setdefault(key, value)

    csrf.init_app(app)
    limiter.init_app(app)


RATE_LIMITS = {
    'session': "30 per hour",
    'edit': "600 per hour",
    'upload': "120 per hour",
    'submit': "10 per hour",
}


def rate_limit_session():
    """Limit for starting a session, which hits the remote API."""
    return limiter.limit(RATE_LIMITS['session'])


def rate_limit_edit():
    """Limit for patches, navigation and saves."""
    return limiter.limit(RATE_LIMITS['edit'])


def rate_limit_upload():
    return limiter.limit(RATE_LIMITS['upload'])


def rate_limit_submit():
    return limiter.limit(RATE_LIMITS['submit'])


MAX_TEXT_INPUT = 10000

SCRIPT_BLOCK = re.compile(r'<script\b[^>]*>.*?</script\s*>', re.DOTALL | re.IGNORECASE)
INLINE_HANDLER = re.compile(r'\bon[a-z]+\s*=', re.IGNORECASE)
MARKUP_TAG = re.compile(r'<[^>]+>')


def sanitize_string(value: Any, max_length: int = MAX_TEXT_INPUT) -> str:
    """
    Reduce typed text to plain text.

    Script blocks go first (with their contents), then inline event
    handlers, then any remaining tags. The result is cut to max_length
    and trimmed.
    """
    if value is None:
        return ''

    text = value if isinstance(value, str) else str(value)
    for pattern in (SCRIPT_BLOCK, INLINE_HANDLER, MARKUP_TAG):
        text = pattern.sub('', text)
    return text[:max_length].strip()


def sanitize_payload(payload: Any) -> Any:
    """
    Sanitize every string inside a section patch.

    Numbers, booleans, None and file attachments are returned as they are.
    """
    if isinstance(payload, str):
        return sanitize_string(payload)
    if isinstance(payload, dict):
        return {key: sanitize_payload(value) for key, value in payload.items()}
    if isinstance(payload, list):
        return [sanitize_payload(item) for item in payload]
    return payload


def get_client_ip() -> str:
    """Caller address, preferring the first hop a proxy reports."""
    forwarded = request.headers.get('X-Forwarded-For', '')
    first_hop = forwarded.split(',')[0].strip()
    if first_hop:
        return first_hop
    return request.headers.get('X-Real-Ip') or request.remote_addr or 'unknown'


STUDENT_ID_PATTERN = re.compile(r'^[A-Za-z0-9_.:-]{1,100}$')


def get_student_id() -> Optional[str]:
    """
    Identify the calling student.

    The login session wins; the X-Student-Id header is accepted from the
    gateway in front of the API. Malformed identifiers are ignored.
    """
    student_id = session.get('student_id') or request.headers.get('X-Student-Id')
    if not student_id:
        return None
    student_id = str(student_id).strip()
    return student_id if STUDENT_ID_PATTERN.match(student_id) else None
