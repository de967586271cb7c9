"""
Subjects, groups and enrollment.

A subject belongs to one teacher and owns its groups. Students join groups
through group_students rows, unique per (group, student); that constraint,
not a lock in this process, is what rejects concurrent duplicate enrollments.
"""
import logging

from postgrest.exceptions import APIError

from ..db import get_supabase, run, first
from ..errors import BadRequest, Conflict, NotFound, UpstreamError, is_unique_violation
from .identity import resolve_user_id

logger = logging.getLogger(__name__)

SUBJECT_FIELDS = ('name', 'code', 'semester', 'career', 'school_year')


def _subject_out(row, groups):
    return {
        "id": row['id'],
        "name": row['name'],
        "code": row.get('code') or '',
        "semester": row.get('semester') or '',
        "career": row.get('career') or '',
        "teacher_id": row['teacher_id'],
        "school_year": row.get('school_year') or '',
        "groups": groups,
        "created_at": row.get('created_at'),
    }


def _group_out(row, students):
    return {
        "id": row['id'],
        "subject_id": row['subject_id'],
        "name": row['name'],
        "schedule": row.get('schedule') or '',
        "students": students,
    }


# ============ Lookups ============

def get_subject(subject_id, db=None):
    db = db or get_supabase()
    row = first(run(db.table('subjects').select('*').eq('id', subject_id).limit(1), "Subject lookup"))
    if row is None:
        raise NotFound("Subject not found")
    return row


def get_group(group_id, db=None):
    db = db or get_supabase()
    row = first(run(db.table('groups').select('*').eq('id', group_id).limit(1), "Group lookup"))
    if row is None:
        raise NotFound("Group not found")
    return row


def _owned_subject(subject_id, owner_id, db):
    subject = get_subject(subject_id, db=db)
    if owner_id is not None and subject['teacher_id'] != owner_id:
        # other teachers' subjects are invisible, not forbidden
        raise NotFound("Subject not found")
    return subject


def _owned_group(group_id, owner_id, db):
    group = get_group(group_id, db=db)
    _owned_subject(group['subject_id'], owner_id, db)
    return group


def is_member(group_id, student_id, db=None):
    db = db or get_supabase()
    rows = run(
        db.table('group_students').select('group_id').eq('group_id', group_id).eq('student_id', student_id).limit(1),
        "Membership lookup",
    )
    return bool(rows)


# ============ Subjects ============

def create_subject(owner_id, name, code='', semester='', career='', school_year='', db=None):
    if not name or not str(name).strip():
        raise BadRequest("Subject name is required")
    db = db or get_supabase()
    row = first(run(db.table('subjects').insert({
        "name": str(name).strip(),
        "code": code or '',
        "semester": semester or '',
        "career": career or '',
        "teacher_id": owner_id,
        "school_year": school_year or '',
    }), "Subject insert"))
    if row is None:
        raise UpstreamError("Subject insert returned no row")
    logger.info("Subject created: %s (%s) by %s", row['name'], row['id'], owner_id)
    return _subject_out(row, [])


def update_subject(subject_id, owner_id, db=None, **fields):
    """Apply the non-empty fields. Returns True when anything changed."""
    db = db or get_supabase()
    _owned_subject(subject_id, owner_id, db)

    updates = {k: v for k, v in fields.items() if k in SUBJECT_FIELDS and v}
    if not updates:
        return False
    run(db.table('subjects').update(updates).eq('id', subject_id), "Subject update")
    return True


def delete_subject(subject_id, owner_id, db=None):
    """Delete a subject; its groups and memberships cascade in the database."""
    db = db or get_supabase()
    _owned_subject(subject_id, owner_id, db)
    run(db.table('subjects').delete().eq('id', subject_id), "Subject delete")
    logger.info("Subject deleted: %s", subject_id)


# ============ Groups ============

def add_group(subject_id, owner_id, name, schedule='', db=None):
    if not name or not str(name).strip():
        raise BadRequest("Group name is required")
    db = db or get_supabase()
    _owned_subject(subject_id, owner_id, db)
    row = first(run(db.table('groups').insert({
        "subject_id": subject_id,
        "name": str(name).strip(),
        "schedule": schedule or '',
    }), "Group insert"))
    if row is None:
        raise UpstreamError("Group insert returned no row")
    return _group_out(row, [])


def remove_group(group_id, owner_id, db=None):
    db = db or get_supabase()
    _owned_group(group_id, owner_id, db)
    run(db.table('groups').delete().eq('id', group_id), "Group delete")
    logger.info("Group deleted: %s", group_id)


# ============ Enrollment ============

def _existing_student(student_ref, db):
    """Canonical id of a student with a profile row, else NotFound."""
    student_id = resolve_user_id(student_ref, db=db)
    if student_id is None:
        raise NotFound("Student not found")
    profile = first(run(
        db.table('profiles').select('id, role').eq('id', student_id).limit(1),
        "Student profile lookup",
    ))
    if profile is None or profile.get('role') != 'student':
        raise NotFound("Student not found")
    return student_id


def enroll_student(group_id, student_ref, owner_id=None, db=None):
    """
    Add a student (canonical id or short code) to a group.

    Raises:
        NotFound: unknown student or group
        Conflict: the student is already in the group
    """
    db = db or get_supabase()
    student_id = _existing_student(student_ref, db)
    _owned_group(group_id, owner_id, db)

    if is_member(group_id, student_id, db=db):
        raise Conflict("Student is already enrolled in this group")

    try:
        db.table('group_students').insert({"group_id": group_id, "student_id": student_id}).execute()
    except APIError as e:
        if is_unique_violation(e):
            raise Conflict("Student is already enrolled in this group") from e
        logger.error("Enrollment insert failed: %s", e.message)
        raise UpstreamError("Enrollment failed") from e

    logger.info("Student %s enrolled in group %s", student_id, group_id)
    return student_id


def unenroll_student(group_id, student_ref, owner_id=None, db=None):
    db = db or get_supabase()
    student_id = resolve_user_id(student_ref, db=db)
    if student_id is None:
        raise NotFound("Student not found")
    _owned_group(group_id, owner_id, db)
    run(
        db.table('group_students').delete().eq('group_id', group_id).eq('student_id', student_id),
        "Unenroll",
    )
    return student_id


# ============ Visible subjects ============

def subjects_for_student(student_ref, db=None):
    """
    Subjects reachable through the student's groups, one entry per subject,
    each listing only the groups this student belongs to.
    """
    db = db or get_supabase()
    student_id = resolve_user_id(student_ref, db=db)
    if student_id is None:
        return []

    memberships = run(
        db.table('group_students').select('group_id').eq('student_id', student_id),
        "Student memberships",
    )
    group_ids = sorted({m['group_id'] for m in memberships})
    if not group_ids:
        return []

    groups = run(db.table('groups').select('*').in_('id', group_ids), "Student groups")
    subject_ids = sorted({g['subject_id'] for g in groups})
    if not subject_ids:
        return []
    subjects = run(db.table('subjects').select('*').in_('id', subject_ids), "Student subjects")

    groups_by_subject = {}
    for g in groups:
        groups_by_subject.setdefault(g['subject_id'], []).append(_group_out(g, [student_id]))

    seen = set()
    result = []
    for s in subjects:
        if s['id'] in seen:
            continue
        seen.add(s['id'])
        result.append(_subject_out(s, groups_by_subject.get(s['id'], [])))
    return result


def subjects_for_teacher(teacher_ref, db=None):
    """Subjects the teacher owns, newest first, with every group and its members."""
    db = db or get_supabase()
    teacher_id = resolve_user_id(teacher_ref, db=db)
    if teacher_id is None:
        return []

    subjects = run(
        db.table('subjects').select('*').eq('teacher_id', teacher_id).order('created_at', desc=True),
        "Teacher subjects",
    )
    if not subjects:
        return []

    groups = run(db.table('groups').select('*').in_('subject_id', [s['id'] for s in subjects]), "Teacher groups")
    members = {}
    if groups:
        rows = run(
            db.table('group_students').select('*').in_('group_id', [g['id'] for g in groups]),
            "Group members",
        )
        for r in rows:
            members.setdefault(r['group_id'], []).append(r['student_id'])

    groups_by_subject = {}
    for g in groups:
        groups_by_subject.setdefault(g['subject_id'], []).append(_group_out(g, members.get(g['id'], [])))

    return [_subject_out(s, groups_by_subject.get(s['id'], [])) for s in subjects]
