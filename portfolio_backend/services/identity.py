"""
Identity resolution.

External callers may identify a user either by the canonical Supabase id
(a UUID) or by the human-facing short code printed on their profile
(A000123 for students, T000456 for teachers). Everything stored or compared
internally uses the canonical id only.
"""
import re
from typing import Optional

from ..db import get_supabase, run, first

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
    re.IGNORECASE,
)


def is_canonical_id(value) -> bool:
    """Check whether a value already has the canonical id shape."""
    return bool(value) and bool(UUID_PATTERN.match(str(value)))


def resolve_user_id(value, db=None) -> Optional[str]:
    """
    Map a short code or canonical id to the canonical user id.

    Canonical ids are returned untouched without a lookup. Short codes are
    looked up as a student code first, then as a teacher code.

    Returns:
        The canonical id, or None when nothing matches.
    """
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if is_canonical_id(value):
        return value

    db = db or get_supabase()

    student = first(run(
        db.table('profiles').select('id').eq('student_id', value).limit(1),
        "Student code lookup",
    ))
    if student:
        return student['id']

    teacher = first(run(
        db.table('profiles').select('id').eq('teacher_id', value).limit(1),
        "Teacher code lookup",
    ))
    if teacher:
        return teacher['id']

    return None
