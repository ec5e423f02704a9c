from flask import Blueprint, request, jsonify, current_app

from medical_portal.schemas import FileIdRequest
from medical_portal.services.assignment_store import AssignmentStore
from medical_portal.services.docspace_service import DocSpaceError, DocSpaceService, get_docspace
from medical_portal.services.fill_sign_service import filter_by_tab, get_fill_sign_service
from medical_portal.utils import api_error, call_quietly, error_response, normalize

doctor_bp = Blueprint('doctor', __name__, url_prefix='/api/doctor')


@doctor_bp.route('/rooms', methods=['GET'])
def list_patient_rooms():
    try:
        rooms = [
            {
                "id": room.get('id'),
                "title": room.get('title'),
                "patientName": DocSpaceService.patient_name_from_room(room.get('title')),
                "url": room.get('webUrl') or room.get('shortWebUrl')
            }
            for room in get_docspace().list_rooms()
            if DocSpaceService.is_patient_room(room.get('title'))
        ]
        rooms.sort(key=lambda room: normalize(room['patientName']))
        return jsonify({"rooms": rooms})
    except Exception as e:
        current_app.logger.error(f"Listing patient rooms failed: {e}")
        return error_response(e)


@doctor_bp.route('/rooms/<room_id>/folder-contents', methods=['GET'])
def room_folder_contents(room_id):
    """Contents of the folder of a patient room whose title matches `?title=`."""
    title = (request.args.get('title') or '').strip()
    if not title:
        return api_error('title is required', status=400)
    try:
        docspace = get_docspace()
        folder = docspace.get_folder_by_title_within(room_id, title)
        if not folder or not folder.get('id'):
            target = normalize(title)
            fallback = next(
                (item for item in docspace.get_room_summary(room_id) if target in normalize(item.get('title'))),
                None
            )
            if fallback and fallback.get('id'):
                folder = {'id': fallback['id'], 'title': fallback.get('title')}
        if not folder or not folder.get('id'):
            return api_error(f"Folder not found: {title}", status=404)

        contents = docspace.get_folder_contents(folder['id'])
        return jsonify({"contents": contents, "folder": folder})
    except Exception as e:
        current_app.logger.error(f"Folder '{title}' lookup failed for room {room_id}: {e}")
        return error_response(e)


@doctor_bp.route('/rooms/<room_id>/summary', methods=['GET'])
def room_summary(room_id):
    try:
        return jsonify({"summary": get_docspace().get_room_summary(room_id)})
    except Exception as e:
        current_app.logger.error(f"Room summary failed for {room_id}: {e}")
        return error_response(e)


@doctor_bp.route('/rooms/<room_id>/fill-sign/contents', methods=['GET'])
def room_fill_sign_contents(room_id):
    tab = request.args.get('tab', 'action')
    try:
        docspace = get_docspace()
        room = call_quietly(docspace.get_room_info, room_id, default=None) or {}
        patient_name = DocSpaceService.patient_name_from_room(room.get('title'))

        assignments = AssignmentStore.list_for_room(room_id)
        results = get_fill_sign_service().resolve_assignments(assignments, patient_name=patient_name)
        items = filter_by_tab(results, tab)

        return jsonify({
            "contents": {"items": [item.to_json() for item in items]},
            "patientRoomId": str(room_id),
            "room": room or None,
            "source": "assignments"
        })
    except Exception as e:
        current_app.logger.error(f"Doctor fill & sign contents failed for room {room_id}: {e}")
        return error_response(e)


@doctor_bp.route('/rooms/<room_id>/fill-sign/request', methods=['POST'])
def request_fill_sign(room_id):
    """
    Sends a template to a patient: reuses the template's "fill out" link
    (or creates a ReadWrite external link) and records the assignment.
    """
    try:
        payload = FileIdRequest.model_validate(request.get_json(silent=True) or {})
        docspace = get_docspace()

        try:
            template = docspace.get_file_info(payload.file_id)
        except DocSpaceError as e:
            if e.status != 404:
                raise
            template = None
        if not template:
            return api_error('Template not found', details={"fileId": payload.file_id}, status=404)

        room = call_quietly(docspace.get_room_info, room_id, default=None) or {}
        patient_name = DocSpaceService.patient_name_from_room(room.get('title'))

        link = call_quietly(docspace.get_fill_out_link, payload.file_id, default=None)
        if not link or not link.get('shareLink'):
            link = call_quietly(docspace.set_file_external_link, payload.file_id, '', access='ReadWrite', default=None)
        if not link or not link.get('shareLink'):
            return api_error('Unable to obtain public link to fill out', details={"fileId": payload.file_id}, status=500)

        forms_room = call_quietly(docspace.require_forms_room, default=None) or {}
        assignment = AssignmentStore.record_assignment(
            patient_room_id=room_id,
            template_file_id=payload.file_id,
            share_link=link['shareLink'],
            patient_name=patient_name or None,
            template_title=template.get('title'),
            requested_by=current_app.config.get('DOCSPACE_DOCTOR_EMAIL') or None,
            medical_room_id=forms_room.get('id'),
            share_token=link.get('shareToken') or DocSpaceService.extract_share_token(link['shareLink'])
        )
        current_app.logger.info(f"Fill & sign request {assignment.id} sent to room {room_id}")

        return jsonify({
            "files": [{
                "type": "file",
                "id": payload.file_id,
                "title": assignment.template_title or 'Form',
                "openUrl": assignment.share_link,
                "assignmentId": assignment.id
            }],
            "patientRoomId": str(room_id),
            "room": room or None,
            "source": "assignments"
        })
    except Exception as e:
        current_app.logger.error(f"Fill & sign request failed for room {room_id}: {e}")
        return error_response(e)


@doctor_bp.route('/templates/files', methods=['GET'])
def template_files():
    try:
        docspace = get_docspace()
        forms_room = docspace.require_forms_room()
        folders = call_quietly(docspace.get_forms_room_folders, forms_room['id'], default=None) or {}
        templates = folders.get('templates')
        folder_id = templates['id'] if templates else forms_room['id']

        contents = docspace.get_folder_contents(folder_id)
        files = [item for item in contents.get('items') or [] if item.get('type') == 'file']
        return jsonify({
            "folderId": folder_id,
            "files": files
        })
    except Exception as e:
        current_app.logger.error(f"Listing templates failed: {e}")
        return error_response(e)
