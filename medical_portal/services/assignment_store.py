import logging

from medical_portal.models import db, FillSignAssignment, PatientRoomMapping
from medical_portal.utils import get_now_utc

logger = logging.getLogger(__name__)


def _commit():
    try:
        db.session.commit()
    except Exception as e:
        logger.error(f"Assignment store commit failed: {e}")
        db.session.rollback()
        raise


class AssignmentStore:
    """Persistence for fill & sign assignments and patient-to-room mappings."""

    @staticmethod
    def record_assignment(patient_room_id, template_file_id, share_link, patient_name=None,
                          template_title=None, requested_by=None, medical_room_id=None,
                          share_token=None, assignment_id=None, created_at=None):
        assignment = FillSignAssignment(
            patient_room_id=str(patient_room_id),
            patient_name=patient_name,
            template_file_id=str(template_file_id),
            template_title=template_title,
            requested_by=requested_by,
            medical_room_id=str(medical_room_id) if medical_room_id else None,
            share_link=share_link,
            share_token=share_token,
            created_at=created_at or get_now_utc()
        )
        if assignment_id:
            assignment.id = str(assignment_id)
        db.session.add(assignment)
        _commit()
        logger.info(f"Recorded fill & sign assignment {assignment.id} (template {template_file_id}) for room {patient_room_id}")
        return assignment

    @staticmethod
    def get(assignment_id):
        if not assignment_id:
            return None
        return db.session.get(FillSignAssignment, str(assignment_id))

    @staticmethod
    def list_for_room(patient_room_id):
        if not patient_room_id:
            return []
        return FillSignAssignment.query.filter_by(
            patient_room_id=str(patient_room_id)
        ).order_by(FillSignAssignment.created_at.asc()).all()

    @staticmethod
    def record_patient_mapping(user_id, room_id, patient_name=None):
        if not user_id or not room_id:
            return None
        mapping = db.session.get(PatientRoomMapping, str(user_id))
        if not mapping:
            mapping = PatientRoomMapping(user_id=str(user_id))
            db.session.add(mapping)
        mapping.room_id = str(room_id)
        if patient_name:
            mapping.patient_name = patient_name
        _commit()
        return mapping

    @staticmethod
    def get_patient_room_id(user_id):
        if not user_id:
            return None
        mapping = db.session.get(PatientRoomMapping, str(user_id))
        return mapping.room_id if mapping else None
