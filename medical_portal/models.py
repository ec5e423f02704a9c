import uuid

from flask_sqlalchemy import SQLAlchemy

from medical_portal.schemas import Assignment
from medical_portal.utils import get_now_utc, to_iso

db = SQLAlchemy()


class FillSignAssignment(db.Model):
    __tablename__ = 'fill_sign_assignment'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_room_id = db.Column(db.String(64), nullable=False, index=True)
    patient_name = db.Column(db.String(200), nullable=True)
    template_file_id = db.Column(db.String(64), nullable=False)
    template_title = db.Column(db.String(255), nullable=True)
    requested_by = db.Column(db.String(200), nullable=True) # Doctor email
    medical_room_id = db.Column(db.String(64), nullable=True) # Forms room at request time
    share_link = db.Column(db.Text, nullable=True) # Public "fill out" link sent to the patient
    share_token = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=get_now_utc, nullable=False)

    def to_schema(self):
        return Assignment(
            id=self.id,
            template_file_id=self.template_file_id,
            template_title=self.template_title,
            created_at=to_iso(self.created_at),
            requested_by=self.requested_by,
            share_link=self.share_link,
            share_token=self.share_token,
            patient_room_id=self.patient_room_id,
            patient_name=self.patient_name,
            medical_room_id=self.medical_room_id
        )


class PatientRoomMapping(db.Model):
    __tablename__ = 'patient_room_mapping'
    user_id = db.Column(db.String(64), primary_key=True) # DocSpace user id
    room_id = db.Column(db.String(64), nullable=False)
    patient_name = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime, default=get_now_utc)
    updated_at = db.Column(db.DateTime, default=get_now_utc, onupdate=get_now_utc)
