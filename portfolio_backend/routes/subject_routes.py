"""
Subject and group API routes.
Teachers manage their own subjects, groups and enrollments; students see
the subjects of the groups they belong to.
"""
from flask import Blueprint, request, jsonify, g

from ..auth import require_role
from ..services import catalog_service

subject_bp = Blueprint('subjects', __name__)


@subject_bp.route('/api/subjects/student/<student_ref>', methods=['GET'])
def student_subjects(student_ref):
    """Subjects of a student (canonical id or short code)."""
    return jsonify({"success": True, "subjects": catalog_service.subjects_for_student(student_ref)})


@subject_bp.route('/api/subjects/teacher/<teacher_ref>', methods=['GET'])
def teacher_subjects(teacher_ref):
    """Subjects owned by a teacher, with groups and members."""
    return jsonify({"success": True, "subjects": catalog_service.subjects_for_teacher(teacher_ref)})


@subject_bp.route('/api/subjects', methods=['POST'])
@require_role('teacher')
def create_subject():
    data = request.get_json(silent=True) or {}
    subject = catalog_service.create_subject(
        g.user_id,
        data.get('name'),
        code=data.get('code', ''),
        semester=data.get('semester', ''),
        career=data.get('career', ''),
        school_year=data.get('school_year', ''),
    )
    return jsonify({"success": True, "subject": subject}), 201


@subject_bp.route('/api/subjects/<subject_id>', methods=['PUT'])
@require_role('teacher')
def update_subject(subject_id):
    data = request.get_json(silent=True) or {}
    changed = catalog_service.update_subject(subject_id, g.user_id, **{
        k: data.get(k) for k in catalog_service.SUBJECT_FIELDS
    })
    message = "Subject updated" if changed else "Nothing to update"
    return jsonify({"success": True, "message": message})


@subject_bp.route('/api/subjects/<subject_id>', methods=['DELETE'])
@require_role('teacher')
def delete_subject(subject_id):
    catalog_service.delete_subject(subject_id, g.user_id)
    return jsonify({"success": True, "message": "Subject deleted"})


@subject_bp.route('/api/subjects/<subject_id>/groups', methods=['POST'])
@require_role('teacher')
def add_group(subject_id):
    data = request.get_json(silent=True) or {}
    group = catalog_service.add_group(subject_id, g.user_id, data.get('name'), data.get('schedule', ''))
    return jsonify({"success": True, "group": group}), 201


@subject_bp.route('/api/groups/<group_id>', methods=['DELETE'])
@require_role('teacher')
def remove_group(group_id):
    catalog_service.remove_group(group_id, g.user_id)
    return jsonify({"success": True, "message": "Group deleted"})


@subject_bp.route('/api/groups/<group_id>/students', methods=['POST'])
@require_role('teacher')
def enroll_student(group_id):
    """Body: {student_id}: canonical id or short code (studentId also accepted)."""
    data = request.get_json(silent=True) or {}
    student_ref = data.get('student_id') or data.get('studentId')
    student_id = catalog_service.enroll_student(group_id, student_ref, owner_id=g.user_id)
    return jsonify({"success": True, "student_id": student_id, "message": "Student added to group"}), 201


@subject_bp.route('/api/groups/<group_id>/students/<student_ref>', methods=['DELETE'])
@require_role('teacher')
def unenroll_student(group_id, student_ref):
    catalog_service.unenroll_student(group_id, student_ref, owner_id=g.user_id)
    return jsonify({"success": True, "message": "Student removed from group"})
