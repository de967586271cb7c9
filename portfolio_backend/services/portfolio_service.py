"""
Portfolio lifecycle: submission, review decision, deletion and file access.

State machine:

    pending --approve--> approved
    pending --reject---> rejected

Both decisions are terminal; the only way out is deleting the record.
Status is always set by an explicit teacher decision, never from a score.

Storage and the database are separate systems without a shared transaction,
so each operation orders its writes and compensates on partial failure:
submit uploads the file first and removes it again if the row insert fails;
remove deletes the file best-effort and then the row.
"""
import logging
import os
import uuid
from datetime import datetime, timezone

from ..config import config
from ..db import get_supabase, run, first
from ..errors import BadRequest, Conflict, NotFound, UpstreamError
from . import storage
from .catalog_service import get_group, get_subject, is_member
from .identity import resolve_user_id
from .rubric_engine import score_evaluation

logger = logging.getLogger(__name__)

PENDING = 'pending'
APPROVED = 'approved'
REJECTED = 'rejected'
DECISIONS = (APPROVED, REJECTED)


def _now():
    return datetime.now(timezone.utc).isoformat()


def allowed_file(filename):
    ext = os.path.splitext(filename or '')[1].lower()
    return ext in config.allowed_file_types


def _portfolio_out(row, evaluation=None):
    return {
        "id": row['id'],
        "student_id": row['student_id'],
        "student_name": row.get('student_name') or '',
        "subject_id": row['subject_id'],
        "subject_name": row.get('subject_name') or '',
        "group_id": row['group_id'],
        "semester": row.get('semester') or '',
        "career": row.get('career') or '',
        "class_schedule": row.get('class_schedule') or '',
        "file_name": row.get('file_name') or '',
        "file_size": row.get('file_size') or 0,
        "file_path": row.get('file_path'),
        "submitted_at": row.get('submitted_at'),
        "status": row.get('status') or PENDING,
        "teacher_comment": row.get('teacher_comment'),
        "evaluation": evaluation,
    }


# ============ Evaluation rows ============

def _evaluation_out(eval_row, score_rows):
    rows = sorted(score_rows, key=lambda r: r.get('order_index', 0))
    return {
        "criteria": [{
            "id": r.get('criterion_id') or str(r.get('order_index', i)),
            "name": r.get('criterion_name') or '',
            "description": r.get('criterion_description') or '',
            "max_score": r['criterion_max_score'],
            "score": r.get('score'),
        } for i, r in enumerate(rows)],
        "total_score": eval_row['total_score'],
        "max_total_score": eval_row['max_total_score'],
        "percentage": eval_row['percentage'],
    }


def _load_evaluations(portfolio_ids, db):
    """Map portfolio id -> evaluation for a batch of portfolios."""
    if not portfolio_ids:
        return {}
    evals = run(
        db.table('portfolio_evaluations').select('*').in_('portfolio_id', list(portfolio_ids)),
        "Evaluation lookup",
    )
    if not evals:
        return {}
    scores = run(
        db.table('evaluation_scores').select('*').in_('evaluation_id', [e['id'] for e in evals]),
        "Evaluation scores lookup",
    )
    scores_by_eval = {}
    for s in scores:
        scores_by_eval.setdefault(s['evaluation_id'], []).append(s)
    return {e['portfolio_id']: _evaluation_out(e, scores_by_eval.get(e['id'], [])) for e in evals}


def _delete_evaluation(portfolio_id, db):
    existing = run(
        db.table('portfolio_evaluations').select('id').eq('portfolio_id', portfolio_id),
        "Evaluation lookup",
    )
    for e in existing:
        run(db.table('evaluation_scores').delete().eq('evaluation_id', e['id']), "Evaluation scores delete")
        run(db.table('portfolio_evaluations').delete().eq('id', e['id']), "Evaluation delete")


def _replace_evaluation(portfolio_id, evaluation, db):
    """
    Store an evaluation, replacing any previous one and all its score rows.
    Criteria are copied by value; nothing points back at a template.
    """
    evaluation = score_evaluation(evaluation['criteria'])
    _delete_evaluation(portfolio_id, db)

    evaluation_id = str(uuid.uuid4())
    run(db.table('portfolio_evaluations').insert({
        "id": evaluation_id,
        "portfolio_id": portfolio_id,
        "total_score": evaluation['total_score'],
        "max_total_score": evaluation['max_total_score'],
        "percentage": evaluation['percentage'],
        "updated_at": _now(),
    }), "Evaluation insert")

    run(db.table('evaluation_scores').insert([{
        "evaluation_id": evaluation_id,
        "criterion_id": c['id'],
        "criterion_name": c['name'],
        "criterion_description": c['description'],
        "criterion_max_score": c['max_score'],
        "score": c['score'],
        "order_index": i,
    } for i, c in enumerate(evaluation['criteria'])]), "Evaluation scores insert")
    return evaluation


# ============ Reads ============

def _get_row(portfolio_id, db):
    row = first(run(db.table('portfolios').select('*').eq('id', portfolio_id).limit(1), "Portfolio lookup"))
    if row is None:
        raise NotFound("Portfolio not found")
    return row


def get_portfolio(portfolio_id, db=None):
    db = db or get_supabase()
    row = _get_row(portfolio_id, db)
    return _portfolio_out(row, _load_evaluations([row['id']], db).get(row['id']))


def _with_evaluations(rows, db):
    evaluations = _load_evaluations([r['id'] for r in rows], db)
    return [_portfolio_out(r, evaluations.get(r['id'])) for r in rows]


def list_all(db=None):
    """Every portfolio, newest first, with its evaluation."""
    db = db or get_supabase()
    rows = run(db.table('portfolios').select('*').order('submitted_at', desc=True), "Portfolio listing")
    return _with_evaluations(rows, db)


def list_for_subjects(subject_ids, db=None):
    """Portfolios of the given subjects, newest first."""
    if not subject_ids:
        return []
    db = db or get_supabase()
    rows = run(
        db.table('portfolios').select('*').in_('subject_id', list(subject_ids)).order('submitted_at', desc=True),
        "Portfolio listing",
    )
    return _with_evaluations(rows, db)


def list_for_student(student_ref, db=None):
    db = db or get_supabase()
    student_id = resolve_user_id(student_ref, db=db)
    if student_id is None:
        raise NotFound("Student not found")
    rows = run(
        db.table('portfolios').select('*').eq('student_id', student_id).order('submitted_at', desc=True),
        "Student portfolio listing",
    )
    return _with_evaluations(rows, db)


# ============ Submission ============

def submit(student_ref, subject_id, group_id, filename, data, content_type=None,
           class_schedule=None, db=None):
    """
    Create a pending portfolio for a student's uploaded file.

    The student's name and the subject's name, semester and career are
    copied onto the row at this moment and never refreshed afterwards.

    Raises:
        BadRequest: missing/invalid file, missing ids, group outside the
            subject or student not enrolled in the group
        NotFound: student, subject or group does not exist
        UpstreamError: upload or insert failed (an uploaded file is removed)
    """
    if not filename or data is None or len(data) == 0:
        raise BadRequest("No file provided")
    if not allowed_file(filename):
        raise BadRequest("File type not allowed. Use " + ", ".join(config.allowed_file_types))
    if not subject_id or not group_id:
        raise BadRequest("subject_id and group_id are required")

    db = db or get_supabase()

    student_id = resolve_user_id(student_ref, db=db)
    if student_id is None:
        raise NotFound("Student not found")
    profile = first(run(
        db.table('profiles').select('id, name').eq('id', student_id).limit(1),
        "Student profile lookup",
    ))
    if profile is None:
        raise NotFound("Student not found")

    subject = get_subject(subject_id, db=db)
    group = get_group(group_id, db=db)
    if group['subject_id'] != subject['id']:
        raise BadRequest("Group does not belong to this subject")
    if not is_member(group_id, student_id, db=db):
        raise BadRequest("Student is not enrolled in this group")

    portfolio_id = str(uuid.uuid4())
    stored_path = storage.build_path(portfolio_id, filename)
    storage.put(stored_path, data, content_type, db=db)

    row = {
        "id": portfolio_id,
        "student_id": student_id,
        "student_name": profile.get('name') or '',
        "subject_id": subject['id'],
        "subject_name": subject['name'],
        "group_id": group_id,
        "semester": subject.get('semester') or '',
        "career": subject.get('career') or '',
        "class_schedule": class_schedule or group.get('schedule') or '',
        "file_name": filename,
        "file_size": len(data),
        "file_path": stored_path,
        "status": PENDING,
        "submitted_at": _now(),
    }
    try:
        inserted = first(run(db.table('portfolios').insert(row), "Portfolio insert"))
    except UpstreamError:
        if not storage.delete(stored_path, db=db):
            logger.warning("Orphaned file left in storage: %s", stored_path)
        raise

    logger.info("Portfolio submitted: %s by %s (%s)", portfolio_id, student_id, filename)
    return _portfolio_out(inserted or row)


# ============ Review ============

def save_evaluation(portfolio_id, evaluation, db=None):
    """Store a draft evaluation while the portfolio is still pending."""
    if not evaluation or not evaluation.get('criteria'):
        raise BadRequest("evaluation needs at least one criterion")
    db = db or get_supabase()
    row = _get_row(portfolio_id, db)
    if row.get('status') != PENDING:
        raise Conflict(f"Portfolio is already {row.get('status')}")
    return _replace_evaluation(portfolio_id, evaluation, db)


def decide(portfolio_id, status, comment=None, evaluation=None, db=None):
    """
    Record a teacher's decision.

    The comment is overwritten (None clears it). A supplied evaluation
    replaces the stored one entirely; when none is supplied the stored one
    is left as it is. The score never decides the status.
    """
    if status not in DECISIONS:
        raise BadRequest("status must be 'approved' or 'rejected'")
    if evaluation is not None and not evaluation.get('criteria'):
        raise BadRequest("evaluation needs at least one criterion")
    db = db or get_supabase()
    row = _get_row(portfolio_id, db)
    if row.get('status') != PENDING:
        raise Conflict(f"Portfolio is already {row.get('status')}")

    # evaluation first, so a failed write leaves the portfolio pending
    if evaluation is not None:
        _replace_evaluation(portfolio_id, evaluation, db)

    run(db.table('portfolios').update({
        "status": status,
        "teacher_comment": comment or None,
        "updated_at": _now(),
    }).eq('id', portfolio_id), "Portfolio status update")
    logger.info("Portfolio %s %s", portfolio_id, status)


# ============ Deletion & files ============

def remove(portfolio_id, db=None):
    """Delete the stored file (best-effort), then the portfolio and its evaluation."""
    db = db or get_supabase()
    row = _get_row(portfolio_id, db)

    if row.get('file_path'):
        if not storage.delete(row['file_path'], db=db):
            logger.warning("Continuing portfolio delete despite storage failure: %s", portfolio_id)

    _delete_evaluation(portfolio_id, db)
    run(db.table('portfolios').delete().eq('id', portfolio_id), "Portfolio delete")
    logger.info("Portfolio deleted: %s", portfolio_id)


def file_url(portfolio_id, db=None):
    """A fresh signed URL for the portfolio's file."""
    db = db or get_supabase()
    row = _get_row(portfolio_id, db)
    if not row.get('file_path'):
        raise NotFound("File not found")
    return storage.signed_url(row['file_path'], db=db)
