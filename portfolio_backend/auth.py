"""
Supabase JWT Authentication for the portfolio backend.
Validates Bearer tokens on all /api/ routes except public endpoints and
resolves the caller's role.
"""
import os
import threading
import time
from functools import wraps

import jwt
from flask import request, jsonify, g

from .config import config


# Routes that don't require authentication
PUBLIC_PREFIXES = []

PUBLIC_EXACT = [
    '/api/health',
    '/api/auth/register',
]

# user_id -> (role, expires_at); consulted before the profile lookup
_session_cache = {}
_session_lock = threading.Lock()


def get_jwt_secret():
    """Get the Supabase JWT secret from environment."""
    secret = os.getenv('SUPABASE_JWT_SECRET')
    if not secret:
        raise RuntimeError('SUPABASE_JWT_SECRET not configured')
    return secret


def validate_token(token):
    """
    Validate a Supabase JWT and return the decoded payload.
    Returns None if invalid.
    """
    try:
        payload = jwt.decode(
            token,
            get_jwt_secret(),
            algorithms=['HS256'],
            audience='authenticated',
        )
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def is_public_route(path):
    """Check if a route is public (no auth required)."""
    if path in PUBLIC_EXACT:
        return True
    for prefix in PUBLIC_PREFIXES:
        if path.startswith(prefix):
            return True
    return False


def _role_from_claims(payload):
    # user_metadata is writable by the user, so only app_metadata is trusted
    role = (payload.get('app_metadata') or {}).get('role')
    if role in ('teacher', 'student'):
        return role
    return None


def cached_role(user_id):
    with _session_lock:
        entry = _session_cache.get(user_id)
        if entry is None:
            return None
        role, expires_at = entry
        if expires_at < time.monotonic():
            del _session_cache[user_id]
            return None
        return role


def remember_role(user_id, role):
    with _session_lock:
        _session_cache[user_id] = (role, time.monotonic() + config.session_cache_ttl)


def invalidate_session(user_id=None):
    """Drop one cached session, or all of them."""
    with _session_lock:
        if user_id is None:
            _session_cache.clear()
        else:
            _session_cache.pop(user_id, None)


def resolve_role(user_id, payload):
    """Role from the token claims, then the session cache, then the profile."""
    role = _role_from_claims(payload)
    if role:
        return role
    role = cached_role(user_id)
    if role:
        return role

    from .services.user_service import get_role
    role = get_role(user_id)
    if role:
        remember_role(user_id, role)
    return role


def init_auth(app):
    """
    Register the before_request auth hook on the Flask app.
    Call this BEFORE registering blueprints.
    """
    @app.before_request
    def check_auth():
        # Skip non-API routes and CORS preflight
        if not request.path.startswith('/api/') or request.method == 'OPTIONS':
            return None

        # Skip public routes
        if is_public_route(request.path):
            return None

        # Extract token from Authorization header
        auth_header = request.headers.get('Authorization', '')
        if not auth_header.startswith('Bearer '):
            return jsonify({'success': False, 'error': 'Authentication required'}), 401

        token = auth_header[7:]  # Strip 'Bearer '
        payload = validate_token(token)
        if payload is None or not payload.get('sub'):
            return jsonify({'success': False, 'error': 'Invalid or expired token'}), 401

        # Attach user info to Flask's g object for use in route handlers
        g.user_id = payload.get('sub')
        g.user_email = payload.get('email', '')
        g.user_role = resolve_role(g.user_id, payload)


def require_role(*roles):
    """Reject callers whose role is not in roles with a 403."""
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(*args, **kwargs):
            if getattr(g, 'user_role', None) not in roles:
                return jsonify({'success': False, 'error': 'You do not have permission for this action'}), 403
            return view_func(*args, **kwargs)
        return _wrapped
    return decorator
