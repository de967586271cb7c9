"""
Analytics API routes.
Statistics over the portfolios of the calling teacher's subjects.
"""
from flask import Blueprint, jsonify, g

from ..auth import require_role
from ..services import catalog_service, portfolio_service
from ..services.portfolio_query import teacher_stats

analytics_bp = Blueprint('analytics', __name__)


@analytics_bp.route('/api/stats/teacher', methods=['GET'])
@require_role('teacher')
def get_teacher_stats():
    subjects = catalog_service.subjects_for_teacher(g.user_id)
    portfolios = portfolio_service.list_for_subjects([s['id'] for s in subjects])
    return jsonify({"success": True, "stats": teacher_stats(portfolios, subjects)})
