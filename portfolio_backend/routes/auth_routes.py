"""
Auth Routes for the portfolio backend.
Handles registration, profile lookup and the student directory.
"""
import logging
from flask import Blueprint, request, jsonify

from ..auth import require_role
from ..db import get_supabase
from ..services import user_service

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)


@auth_bp.route('/api/health', methods=['GET'])
def health():
    """Ping the profiles table."""
    try:
        get_supabase().table('profiles').select('id').limit(1).execute()
        return jsonify({"status": "ok", "database": "connected"})
    except Exception as e:
        logger.error("Health check failed: %s", e)
        return jsonify({"status": "error", "database": "unreachable"}), 503


@auth_bp.route('/api/auth/register', methods=['POST'])
def register():
    """
    PUBLIC endpoint. Creates the auth account and profile.
    Body: {name, email, password, role}
    """
    data = request.get_json(silent=True) or {}
    user = user_service.register_user(
        data.get('name'),
        data.get('email'),
        data.get('password'),
        data.get('role'),
    )
    return jsonify({"success": True, "message": "Registration complete. You can sign in now.", "user": user}), 201


@auth_bp.route('/api/auth/user/<user_ref>', methods=['GET'])
def get_user(user_ref):
    """Profile by canonical id or short code."""
    return jsonify({"success": True, "user": user_service.get_user(user_ref)})


@auth_bp.route('/api/auth/students', methods=['GET'])
@require_role('teacher')
def list_students():
    """All students ordered by name, for the enrollment picker."""
    return jsonify({"success": True, "students": user_service.list_students()})
