"""
Filtered and sorted views over portfolios for dashboards and review queues,
plus the teacher statistics page. Everything here is read-only: inputs are
never mutated and new lists are returned.
"""
import unicodedata
from collections import defaultdict
from datetime import datetime, timezone

from ..errors import BadRequest
from .rubric_engine import grade_band, round_percentage

SORT_KEYS = ('alphabetical', 'date', 'semester')

FILTER_KEYS = ('subject', 'semester', 'career', 'class_schedule', 'search', 'status', 'subject_id')

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _contains(value, needle):
    return needle.casefold() in (value or '').casefold()


def _collation_key(text):
    """Accent- and case-insensitive key, so 'Álvaro' sorts beside 'Alvaro'."""
    decomposed = unicodedata.normalize('NFKD', text or '')
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return (stripped.casefold(), text or '')


def _parse_date(value):
    if isinstance(value, datetime):
        dt = value
    elif value:
        try:
            dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return _EPOCH
    else:
        return _EPOCH
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def matches(portfolio, filters):
    """True when a portfolio passes every filter that is set."""
    subject = filters.get('subject')
    if subject and not _contains(portfolio.get('subject_name'), subject):
        return False

    semester = filters.get('semester')
    if semester and portfolio.get('semester') != semester:
        return False

    career = filters.get('career')
    if career and not _contains(portfolio.get('career'), career):
        return False

    schedule = filters.get('class_schedule')
    if schedule and not _contains(portfolio.get('class_schedule'), schedule):
        return False

    search = filters.get('search')
    if search and not (
        _contains(portfolio.get('student_name'), search)
        or _contains(portfolio.get('subject_name'), search)
        or _contains(portfolio.get('career'), search)
    ):
        return False

    status = filters.get('status')
    if status and status != 'all' and portfolio.get('status') != status:
        return False

    subject_id = filters.get('subject_id')
    if subject_id and portfolio.get('subject_id') != subject_id:
        return False

    return True


def sort_portfolios(portfolios, sort_key='date'):
    """Stable sort; ties keep their incoming order."""
    if sort_key == 'alphabetical':
        return sorted(portfolios, key=lambda p: _collation_key(p.get('student_name')))
    if sort_key == 'date':
        return sorted(portfolios, key=lambda p: _parse_date(p.get('submitted_at')), reverse=True)
    if sort_key == 'semester':
        return sorted(portfolios, key=lambda p: p.get('semester') or '')
    raise BadRequest(f"Unknown sort key: {sort_key}")


def view(portfolios, filters=None, sort_key='date'):
    """Filter (all conditions ANDed) and then sort a collection of portfolios."""
    filters = filters or {}
    return sort_portfolios([p for p in portfolios if matches(p, filters)], sort_key)


def filters_from_args(args):
    """Pull filter values out of a query-string mapping."""
    filters = {}
    for key in FILTER_KEYS:
        value = (args.get(key) or '').strip()
        if value:
            filters[key] = value
    return filters


# ============ Statistics ============

def _average(values):
    return sum(values) / len(values) if values else 0


def _status_counts(portfolios):
    counts = {'pending': 0, 'approved': 0, 'rejected': 0}
    for p in portfolios:
        status = p.get('status')
        if status in counts:
            counts[status] += 1
    return counts


def group_stats(subject, portfolios):
    """Submission coverage of each group of a subject."""
    stats = []
    for group in subject.get('groups', []):
        members = set(group.get('students', []))
        submitted = {p['student_id'] for p in portfolios
                     if p.get('group_id') == group['id'] and p.get('student_id') in members}
        total = len(members)
        stats.append({
            "group_id": group['id'],
            "group_name": group.get('name', ''),
            "total": total,
            "submitted": len(submitted),
            "pending": total - len(submitted),
            "percentage": round_percentage(len(submitted) / total * 100) if total else 0,
        })
    return stats


def teacher_stats(portfolios, subjects):
    """
    Dashboard numbers for a teacher's subjects.

    Only portfolios of the given subjects are counted. Averages use the
    stored percentage of evaluated portfolios.
    """
    subject_ids = {s['id'] for s in subjects}
    own = [p for p in portfolios if p.get('subject_id') in subject_ids]
    evaluated = [p for p in own if p.get('evaluation')]

    bands = defaultdict(int)
    for p in evaluated:
        percentage = p['evaluation'].get('percentage') or 0
        if percentage > 0:
            bands[grade_band(percentage)] += 1

    per_subject = []
    for subject in subjects:
        subject_portfolios = [p for p in own if p.get('subject_id') == subject['id']]
        subject_evaluated = [p for p in subject_portfolios if p.get('evaluation')]
        per_subject.append({
            "subject_id": subject['id'],
            "name": subject.get('name', ''),
            "total": len(subject_portfolios),
            **_status_counts(subject_portfolios),
            "evaluated": len(subject_evaluated),
            "average_score": round_percentage(
                _average([p['evaluation']['percentage'] for p in subject_evaluated])),
            "groups": group_stats(subject, subject_portfolios),
        })

    return {
        "total": len(own),
        **_status_counts(own),
        "evaluated": len(evaluated),
        "average_score": round_percentage(_average([p['evaluation']['percentage'] for p in evaluated])),
        "distribution": {
            "excellent": bands['excellent'],
            "good": bands['good'],
            "needs_improvement": bands['needs_improvement'],
        },
        "subjects": per_subject,
    }
