"""
Evaluation template store.

Teachers save named sets of criteria and reuse them across reviews. A
template belongs to exactly one teacher. Built-in templates from
rubric_config are offered on every listing but are never stored.

Portfolios copy criteria by value when they are scored, so deleting or
editing a template never touches an existing evaluation.
"""
import copy
import logging
import uuid
from datetime import datetime, timezone

from ..db import get_supabase, run, first
from ..errors import BadRequest, NotFound, UpstreamError
from ..rubric_config import BUILTIN_TEMPLATES
from .rubric_engine import normalize_criteria

logger = logging.getLogger(__name__)

BUILTIN_IDS = {t['id'] for t in BUILTIN_TEMPLATES}


def builtin_templates():
    """Deep copies of the built-in templates, in API shape."""
    templates = []
    for t in BUILTIN_TEMPLATES:
        templates.append({
            "id": t['id'],
            "teacher_id": None,
            "name": t['name'],
            "description": t['description'],
            "criteria": [_strip_score(c) for c in normalize_criteria(copy.deepcopy(t['criteria']))],
            "is_default": True,
            "created_at": None,
        })
    return templates


def _strip_score(criterion):
    return {k: v for k, v in criterion.items() if k != 'score'}


def _criteria_rows(template_id, criteria):
    return [{
        "id": str(uuid.uuid4()),
        "template_id": template_id,
        "name": c['name'],
        "description": c['description'],
        "max_score": c['max_score'],
        "order_index": i,
    } for i, c in enumerate(criteria)]


def _row_to_template(row, criteria_rows):
    criteria = sorted(criteria_rows, key=lambda r: r.get('order_index', 0))
    return {
        "id": row['id'],
        "teacher_id": row['teacher_id'],
        "name": row['name'],
        "description": row.get('description') or '',
        "criteria": [{
            "id": c['id'],
            "name": c['name'],
            "description": c.get('description') or '',
            "max_score": c['max_score'],
        } for c in criteria],
        "is_default": False,
        "created_at": row.get('created_at'),
    }


def _validated(name, criteria):
    if not name or not str(name).strip():
        raise BadRequest("Template name is required")
    criteria = [_strip_score(c) for c in normalize_criteria(criteria)]
    if not criteria:
        raise BadRequest("A template needs at least one criterion")
    return str(name).strip(), criteria


def save_template(owner_id, name, description, criteria, db=None):
    """
    Store a new template for a teacher.

    Names are not deduplicated; a teacher may keep several templates with
    the same name.
    """
    db = db or get_supabase()
    name, criteria = _validated(name, criteria)

    template_id = str(uuid.uuid4())
    row = {
        "id": template_id,
        "teacher_id": owner_id,
        "name": name,
        "description": description or '',
        "is_default": False,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    run(db.table('evaluation_templates').insert(row), "Template insert")

    criteria_rows = _criteria_rows(template_id, criteria)
    try:
        run(db.table('evaluation_criteria').insert(criteria_rows), "Template criteria insert")
    except UpstreamError:
        run(db.table('evaluation_templates').delete().eq('id', template_id), "Template rollback")
        raise

    logger.info("Template saved: %s (%s) for %s", name, template_id, owner_id)
    return _row_to_template(row, criteria_rows)


def list_templates(owner_id, include_builtin=True, db=None):
    """Built-in templates first, then the teacher's own, oldest first."""
    db = db or get_supabase()
    rows = run(
        db.table('evaluation_templates').select('*').eq('teacher_id', owner_id).order('created_at'),
        "Template listing",
    )

    by_template = {}
    if rows:
        criteria_rows = run(
            db.table('evaluation_criteria').select('*').in_('template_id', [r['id'] for r in rows]),
            "Template criteria listing",
        )
        for c in criteria_rows:
            by_template.setdefault(c['template_id'], []).append(c)

    own = [_row_to_template(r, by_template.get(r['id'], [])) for r in rows]
    return (builtin_templates() if include_builtin else []) + own


def get_template(template_id, owner_id=None, db=None):
    """Fetch one template. Another teacher's template reads as not found."""
    for t in builtin_templates():
        if t['id'] == template_id:
            return t

    db = db or get_supabase()
    row = first(run(
        db.table('evaluation_templates').select('*').eq('id', template_id).limit(1),
        "Template lookup",
    ))
    if row is None or (owner_id is not None and row['teacher_id'] != owner_id):
        raise NotFound("Template not found")

    criteria_rows = run(
        db.table('evaluation_criteria').select('*').eq('template_id', template_id),
        "Template criteria lookup",
    )
    return _row_to_template(row, criteria_rows)


def update_template(template_id, owner_id, name=None, description=None, criteria=None, db=None):
    """Rename, redescribe or replace the criteria of a saved template."""
    if template_id in BUILTIN_IDS:
        raise BadRequest("Built-in templates cannot be modified")
    db = db or get_supabase()
    current = get_template(template_id, owner_id, db=db)

    updates = {}
    if name is not None:
        if not str(name).strip():
            raise BadRequest("Template name is required")
        updates['name'] = str(name).strip()
    if description is not None:
        updates['description'] = description
    if updates:
        run(db.table('evaluation_templates').update(updates).eq('id', template_id), "Template update")

    if criteria is not None:
        _, new_criteria = _validated(updates.get('name', current['name']), criteria)
        run(db.table('evaluation_criteria').delete().eq('template_id', template_id), "Template criteria delete")
        run(db.table('evaluation_criteria').insert(_criteria_rows(template_id, new_criteria)),
            "Template criteria insert")

    return get_template(template_id, owner_id, db=db)


def delete_template(template_id, owner_id, db=None):
    """Delete one saved template and its criteria rows."""
    if template_id in BUILTIN_IDS:
        raise BadRequest("Built-in templates cannot be deleted")
    db = db or get_supabase()
    get_template(template_id, owner_id, db=db)

    run(db.table('evaluation_criteria').delete().eq('template_id', template_id), "Template criteria delete")
    run(db.table('evaluation_templates').delete().eq('id', template_id), "Template delete")
    logger.info("Template deleted: %s", template_id)


def load_criteria(criteria):
    """
    Deep-copy criteria for a new review, giving every criterion a fresh id
    so it cannot collide with ids already on the review screen.
    """
    loaded = []
    for c in normalize_criteria(copy.deepcopy(criteria)):
        c = _strip_score(c)
        c['id'] = uuid.uuid4().hex
        loaded.append(c)
    return loaded


def load_template(template_id, owner_id=None, db=None):
    """Criteria of a template, ready to be scored."""
    template = get_template(template_id, owner_id, db=db)
    return load_criteria(template['criteria'])
