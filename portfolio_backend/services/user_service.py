"""
User profiles: registration and lookup.

Accounts live in Supabase Auth; the profiles table adds the display name,
the role and the short code (A000123 / T000456) people type in forms.
"""
import logging
import time

from postgrest.exceptions import APIError

from ..db import get_supabase, run, first
from ..errors import BadRequest, Conflict, NotFound, UpstreamError, is_unique_violation
from .identity import resolve_user_id

logger = logging.getLogger(__name__)

ROLES = ('teacher', 'student')

MAX_CODE_ATTEMPTS = 20


def generate_short_code(role, now_ms=None):
    """'A' or 'T' followed by the last six digits of the millisecond clock."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    prefix = 'A' if role == 'student' else 'T'
    return prefix + str(now_ms)[-6:]


def allocate_short_code(role, db, now_ms=None):
    """
    A short code no other profile holds. Codes repeat every million
    milliseconds, so a taken code is bumped forward until a free one is found.
    """
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    column = 'student_id' if role == 'student' else 'teacher_id'
    for offset in range(MAX_CODE_ATTEMPTS):
        code = generate_short_code(role, now_ms + offset)
        taken = run(db.table('profiles').select('id').eq(column, code).limit(1), "Short code lookup")
        if not taken:
            return code
    raise UpstreamError("Could not allocate a short code")


def profile_out(row):
    return {
        "id": row['id'],
        "name": row.get('name') or '',
        "email": row.get('email') or '',
        "role": row.get('role'),
        "student_id": row.get('student_id') or None,
        "teacher_id": row.get('teacher_id') or None,
    }


def _auth_user_id(response):
    user = getattr(response, 'user', None)
    return getattr(user, 'id', None)


def _rollback_auth_user(db, user_id):
    try:
        db.auth.admin.delete_user(user_id)
    except Exception as cleanup_error:
        logger.warning("Could not roll back auth user %s: %s", user_id, cleanup_error)


def register_user(name, email, password, role, db=None):
    """
    Create the auth account and the profile row.

    Raises:
        BadRequest: missing field or unknown role
        Conflict: the email is already registered
        UpstreamError: auth or database failure (a fresh auth user is rolled back)
    """
    if not name or not email or not password or not role:
        raise BadRequest("Missing required fields: name, email, password, role")
    if role not in ROLES:
        raise BadRequest("role must be 'teacher' or 'student'")

    db = db or get_supabase()
    email = email.strip().lower()

    existing = run(db.table('profiles').select('id').eq('email', email).limit(1), "Profile email lookup")
    if existing:
        raise Conflict("This email is already registered")

    try:
        created = db.auth.admin.create_user({
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": {"name": name},
            "app_metadata": {"role": role},
        })
    except Exception as e:
        logger.error("Auth user creation failed for %s: %s", email, e)
        raise UpstreamError("Could not create user account") from e

    user_id = _auth_user_id(created)
    if not user_id:
        raise UpstreamError("Auth service returned no user id")

    short_code = allocate_short_code(role, db)
    row = {
        "id": user_id,
        "name": name.strip(),
        "email": email,
        "role": role,
        "student_id": short_code if role == 'student' else None,
        "teacher_id": short_code if role == 'teacher' else None,
    }
    try:
        db.table('profiles').insert(row).execute()
    except APIError as e:
        _rollback_auth_user(db, user_id)
        if is_unique_violation(e):
            raise Conflict("This email is already registered") from e
        logger.error("Profile insert failed for %s: %s", email, e.message)
        raise UpstreamError("Profile insert failed") from e
    except Exception as e:
        _rollback_auth_user(db, user_id)
        logger.error("Profile insert failed for %s: %s", email, e)
        raise UpstreamError("Profile insert failed") from e

    logger.info("User registered: %s (%s, %s)", email, role, short_code)
    return profile_out(row)


def get_user(user_ref, db=None):
    db = db or get_supabase()
    user_id = resolve_user_id(user_ref, db=db)
    if user_id is None:
        raise NotFound("User not found")
    row = first(run(db.table('profiles').select('*').eq('id', user_id).limit(1), "Profile lookup"))
    if row is None:
        raise NotFound("User not found")
    return profile_out(row)


def get_role(user_id, db=None):
    """Role stored on the profile, or None."""
    db = db or get_supabase()
    row = first(run(db.table('profiles').select('role').eq('id', user_id).limit(1), "Role lookup"))
    return row.get('role') if row else None


def list_students(db=None):
    db = db or get_supabase()
    rows = run(db.table('profiles').select('*').eq('role', 'student').order('name'), "Student listing")
    return [profile_out(r) for r in rows]
