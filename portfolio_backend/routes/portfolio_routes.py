"""
Portfolio API routes.
Students upload portfolios; teachers review, decide and delete them.
Files are served through short-lived signed URLs because the bucket is private.
"""
from flask import Blueprint, request, jsonify, g, redirect
from werkzeug.utils import secure_filename

from ..auth import require_role
from ..errors import BadRequest, NotFound
from ..services import catalog_service, portfolio_service
from ..services.identity import resolve_user_id
from ..services.portfolio_query import view, filters_from_args
from ..services.rubric_engine import evaluation_from_payload

portfolio_bp = Blueprint('portfolios', __name__)


def _visible_portfolio(portfolio_id):
    """Load a portfolio the caller may see: their own, or one of their subjects'."""
    portfolio = portfolio_service.get_portfolio(portfolio_id)
    if g.user_role == 'teacher':
        subject = catalog_service.get_subject(portfolio['subject_id'])
        if subject['teacher_id'] == g.user_id:
            return portfolio
    elif portfolio['student_id'] == g.user_id:
        return portfolio
    raise NotFound("Portfolio not found")


@portfolio_bp.route('/api/portfolios', methods=['GET'])
def list_portfolios():
    """
    Teachers get the portfolios of their subjects, students their own.
    Query params: subject, semester, career, class_schedule, search,
    status, subject_id, sort (alphabetical | date | semester).
    """
    if g.user_role == 'teacher':
        subject_ids = [s['id'] for s in catalog_service.subjects_for_teacher(g.user_id)]
        portfolios = portfolio_service.list_for_subjects(subject_ids)
    else:
        portfolios = portfolio_service.list_for_student(g.user_id)

    result = view(portfolios, filters_from_args(request.args), request.args.get('sort', 'date'))
    return jsonify({"success": True, "portfolios": result, "total": len(result)})


@portfolio_bp.route('/api/portfolios/student/<student_ref>', methods=['GET'])
def student_portfolios(student_ref):
    if g.user_role != 'teacher' and resolve_user_id(student_ref) != g.user_id:
        raise NotFound("Student not found")
    portfolios = portfolio_service.list_for_student(student_ref)
    return jsonify({"success": True, "portfolios": portfolios})


@portfolio_bp.route('/api/portfolios/<portfolio_id>', methods=['GET'])
def get_portfolio(portfolio_id):
    return jsonify({"success": True, "portfolio": _visible_portfolio(portfolio_id)})


@portfolio_bp.route('/api/portfolios', methods=['POST'])
def submit_portfolio():
    """
    Multipart upload. Fields: file, subject_id, group_id, class_schedule;
    teachers submitting for a student also send student_id.
    """
    if 'file' not in request.files:
        raise BadRequest("No file provided")

    file = request.files['file']
    filename = secure_filename(file.filename or '')
    if not filename:
        raise BadRequest("No file provided")

    if g.user_role == 'teacher':
        student_ref = request.form.get('student_id')
    else:
        student_ref = g.user_id

    portfolio = portfolio_service.submit(
        student_ref,
        request.form.get('subject_id'),
        request.form.get('group_id'),
        filename,
        file.read(),
        content_type=file.mimetype,
        class_schedule=request.form.get('class_schedule'),
    )
    return jsonify({"success": True, "portfolio": portfolio}), 201


@portfolio_bp.route('/api/portfolios/<portfolio_id>/evaluation', methods=['PUT'])
@require_role('teacher')
def save_evaluation(portfolio_id):
    """Save a draft evaluation without deciding."""
    _visible_portfolio(portfolio_id)
    data = request.get_json(silent=True) or {}
    evaluation = portfolio_service.save_evaluation(portfolio_id, evaluation_from_payload(data.get('evaluation')))
    return jsonify({"success": True, "evaluation": evaluation})


@portfolio_bp.route('/api/portfolios/<portfolio_id>/status', methods=['PUT'])
@require_role('teacher')
def decide(portfolio_id):
    """Body: {status: approved|rejected, comment?, evaluation?}"""
    _visible_portfolio(portfolio_id)
    data = request.get_json(silent=True) or {}
    evaluation = data.get('evaluation')
    portfolio_service.decide(
        portfolio_id,
        data.get('status'),
        comment=data.get('comment'),
        evaluation=evaluation_from_payload(evaluation) if evaluation else None,
    )
    return jsonify({"success": True, "message": "Portfolio updated"})


@portfolio_bp.route('/api/portfolios/<portfolio_id>', methods=['DELETE'])
@require_role('teacher')
def delete_portfolio(portfolio_id):
    _visible_portfolio(portfolio_id)
    portfolio_service.remove(portfolio_id)
    return jsonify({"success": True, "message": "Portfolio deleted"})


@portfolio_bp.route('/api/files/<portfolio_id>', methods=['GET'])
def portfolio_file(portfolio_id):
    """Redirect to a fresh signed URL, or return it with ?format=json."""
    _visible_portfolio(portfolio_id)
    url = portfolio_service.file_url(portfolio_id)
    if request.args.get('format') == 'json':
        return jsonify({"success": True, "url": url})
    return redirect(url)
