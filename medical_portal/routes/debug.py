from flask import Blueprint, request, jsonify, current_app

from medical_portal.services.assignment_store import AssignmentStore
from medical_portal.services.fill_sign_service import get_fill_sign_service
from medical_portal.utils import api_error, error_response

# Registered only when ENABLE_DEBUG_API is on
debug_bp = Blueprint('debug', __name__, url_prefix='/api/debug')


@debug_bp.route('/fill-sign/resolve', methods=['GET'])
def resolve_fill_sign():
    """Runs the status classifier for a room and patient name, unfiltered."""
    patient_room_id = (request.args.get('patientRoomId') or '').strip()
    patient_name = (request.args.get('patientName') or '').strip()
    if not patient_room_id:
        return api_error('patientRoomId is required', status=400)
    if not patient_name:
        return api_error('patientName is required', status=400)
    try:
        assignments = AssignmentStore.list_for_room(patient_room_id)
        resolved = get_fill_sign_service().resolve_assignments(assignments, patient_name=patient_name)
        return jsonify({
            "patientRoomId": patient_room_id,
            "patientName": patient_name,
            "assignmentsCount": len(assignments),
            "resolved": [item.to_json() for item in resolved]
        })
    except Exception as e:
        current_app.logger.error(f"Debug resolve failed for room {patient_room_id}: {e}")
        return error_response(e)


@debug_bp.route('/fill-sign/assignments', methods=['GET'])
def list_fill_sign_assignments():
    patient_room_id = (request.args.get('patientRoomId') or '').strip()
    if not patient_room_id:
        return api_error('patientRoomId is required', status=400)
    try:
        assignments = AssignmentStore.list_for_room(patient_room_id)
        return jsonify({
            "patientRoomId": patient_room_id,
            "assignments": [assignment.to_schema().to_json() for assignment in assignments]
        })
    except Exception as e:
        current_app.logger.error(f"Debug assignments failed for room {patient_room_id}: {e}")
        return error_response(e)
