"""
Evaluation template and rubric API routes.
"""
from flask import Blueprint, request, jsonify, g

from ..auth import require_role
from ..errors import BadRequest
from ..rubric_config import DEFAULT_CRITERIA
from ..services import template_store
from ..services.rubric_engine import score_evaluation, reset_evaluation, summarize

template_bp = Blueprint('templates', __name__)


@template_bp.route('/api/templates', methods=['GET'])
@require_role('teacher')
def list_templates():
    """Built-in templates followed by the teacher's own."""
    return jsonify({"success": True, "templates": template_store.list_templates(g.user_id)})


@template_bp.route('/api/templates', methods=['POST'])
@require_role('teacher')
def save_template():
    data = request.get_json(silent=True) or {}
    template = template_store.save_template(
        g.user_id, data.get('name'), data.get('description', ''), data.get('criteria'),
    )
    return jsonify({"success": True, "template": template}), 201


@template_bp.route('/api/templates/<template_id>', methods=['PUT'])
@require_role('teacher')
def update_template(template_id):
    data = request.get_json(silent=True) or {}
    template = template_store.update_template(
        template_id, g.user_id,
        name=data.get('name'),
        description=data.get('description'),
        criteria=data.get('criteria'),
    )
    return jsonify({"success": True, "template": template})


@template_bp.route('/api/templates/<template_id>', methods=['DELETE'])
@require_role('teacher')
def delete_template(template_id):
    template_store.delete_template(template_id, g.user_id)
    return jsonify({"success": True, "message": "Template deleted"})


@template_bp.route('/api/templates/<template_id>/load', methods=['POST'])
@require_role('teacher')
def load_template(template_id):
    """Criteria copied out of a template with fresh ids, ready for scoring."""
    criteria = template_store.load_template(template_id, g.user_id)
    return jsonify({"success": True, "criteria": criteria})


@template_bp.route('/api/rubric/score', methods=['POST'])
@require_role('teacher')
def score_rubric():
    """
    Draft scoring. Body: {criteria?, scores?, reset?}
    Without criteria the default rubric is used.
    """
    data = request.get_json(silent=True) or {}
    criteria = data.get('criteria') or DEFAULT_CRITERIA
    scores = data.get('scores')
    if scores is not None and not isinstance(scores, (list, dict)):
        raise BadRequest("scores must be a list or an object")

    evaluation = score_evaluation(criteria, scores)
    if data.get('reset'):
        evaluation = reset_evaluation(evaluation)
    return jsonify({"success": True, "evaluation": summarize(evaluation)})
