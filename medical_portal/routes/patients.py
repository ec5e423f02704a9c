from flask import Blueprint, request, jsonify, current_app

from medical_portal.schemas import FileIdRequest
from medical_portal.services.assignment_store import AssignmentStore
from medical_portal.services.docspace_service import DocSpaceService, get_docspace
from medical_portal.services.fill_sign_service import filter_by_tab, get_fill_sign_service
from medical_portal.utils import api_error, call_quietly, error_response

patients_bp = Blueprint('patients', __name__, url_prefix='/api/patients')


def _user_token():
    return (request.headers.get('Authorization') or '').strip()


@patients_bp.before_request
def require_user_token():
    if not _user_token():
        return api_error('Authorization token is required', status=401)


def display_name_of(profile):
    """displayName, else "first last", else userName, else email."""
    profile = profile or {}
    display_name = str(profile.get('displayName') or '').strip()
    if display_name:
        return display_name
    full_name = ' '.join(
        part for part in [str(profile.get('firstName') or '').strip(), str(profile.get('lastName') or '').strip()]
        if part
    )
    return full_name or str(profile.get('userName') or '').strip() or str(profile.get('email') or '').strip()


def room_title_candidates(profile, display_name):
    email = str((profile or {}).get('email') or '').strip()
    names = [display_name, (profile or {}).get('userName'), email, email.split('@')[0] if email else None]
    candidates = []
    for name in names:
        title = DocSpaceService.patient_room_title(str(name or '').strip())
        if title and title not in candidates:
            candidates.append(title)
    return candidates


def resolve_patient_room(docspace, profile, display_name):
    user_id = profile.get('id')
    room_id = AssignmentStore.get_patient_room_id(user_id)
    if room_id:
        return room_id

    room = call_quietly(docspace.find_room_by_candidates, room_title_candidates(profile, display_name), default=None)
    if not room or not room.get('id'):
        return None
    AssignmentStore.record_patient_mapping(user_id, room['id'], patient_name=display_name)
    return str(room['id'])


@patients_bp.route('/fill-sign/contents', methods=['GET'])
def fill_sign_contents():
    tab = request.args.get('tab', 'action')
    try:
        docspace = get_docspace()
        profile = docspace.get_self_profile(_user_token()) or {}
        if not profile.get('id'):
            return api_error('Unable to resolve user from token', status=401)
        display_name = display_name_of(profile)

        room_id = resolve_patient_room(docspace, profile, display_name)
        if not room_id:
            return jsonify({
                "contents": {"items": []},
                "source": "assignments",
                "note": "patient-room-not-resolved"
            })

        assignments = AssignmentStore.list_for_room(room_id)
        results = get_fill_sign_service().resolve_assignments(assignments, patient_name=display_name)
        items = filter_by_tab(results, tab)

        return jsonify({
            "contents": {"items": [item.to_json() for item in items]},
            "patientRoomId": room_id,
            "source": "assignments"
        })
    except Exception as e:
        current_app.logger.error(f"Patient fill & sign contents failed: {e}")
        return error_response(e)


@patients_bp.route('/folder-contents', methods=['GET'])
def folder_contents():
    folder_id = request.args.get('folderId')
    if not folder_id:
        return api_error('folderId is required', status=400)
    try:
        contents = get_docspace().get_folder_contents(folder_id, auth=_user_token())
        return jsonify({"contents": contents})
    except Exception as e:
        current_app.logger.error(f"Folder contents failed for {folder_id}: {e}")
        return error_response(e)


@patients_bp.route('/room-summary', methods=['GET'])
def room_summary():
    room_id = request.args.get('roomId')
    if not room_id:
        return api_error('roomId is required', status=400)
    try:
        summary = get_docspace().get_room_summary(room_id, auth=_user_token())
        return jsonify({"summary": summary})
    except Exception as e:
        current_app.logger.error(f"Room summary failed for {room_id}: {e}")
        return error_response(e)


@patients_bp.route('/file-share-link', methods=['POST'])
def file_share_link():
    try:
        payload = FileIdRequest.model_validate(request.get_json(silent=True) or {})
        link = get_docspace().set_file_external_link(payload.file_id, _user_token(), access='Read')
        return jsonify({"link": link})
    except Exception as e:
        current_app.logger.error(f"File share link failed: {e}")
        return error_response(e)


@patients_bp.route('/fill-sign/complete', methods=['POST'])
def fill_sign_complete():
    """
    Kept for older portal clients. Completion is detected from the forms room,
    so nothing is persisted here.
    """
    try:
        payload = FileIdRequest.model_validate(request.get_json(silent=True) or {})
        return jsonify({"ok": True, "fileId": payload.file_id})
    except Exception as e:
        return error_response(e)
