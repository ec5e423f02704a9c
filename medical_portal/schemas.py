"""
Request/response DTOs.

Everything crossing the HTTP boundary or the reconciliation core goes through
one of these models; JSON keys are camelCase to match the portal frontend.
"""
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

STATUS_ACTION = 'action'
STATUS_COMPLETED = 'completed'


def _as_id(value):
    if value is None:
        return None
    return str(value).strip()


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self):
        return self.model_dump(by_alias=True)


class Assignment(CamelModel):
    """A form template sent to a patient. Immutable once recorded."""
    id: str
    template_file_id: Optional[str] = None
    template_title: Optional[str] = None
    created_at: Optional[str] = None
    requested_by: Optional[str] = None
    share_link: Optional[str] = None
    share_token: Optional[str] = None
    patient_room_id: Optional[str] = None
    patient_name: Optional[str] = None
    medical_room_id: Optional[str] = None

    @field_validator('id', 'template_file_id', 'patient_room_id', 'medical_room_id', mode='before')
    @classmethod
    def coerce_ids(cls, value):
        return _as_id(value)


class Instance(CamelModel):
    """A filled-form file matched to a (patient, template) pair during one reconciliation pass."""
    id: str
    title: str = ''
    created_at: str = ''
    form_filling_status: Any = None
    comment: Any = None
    folder_id: str


class ResolvedAssignment(CamelModel):
    type: Literal['file'] = 'file'
    assignment_id: str
    template_file_id: Optional[str] = None
    title: str = 'Form'
    open_url: Optional[str] = None
    status: Literal['action', 'completed'] = STATUS_ACTION
    instance_file_id: Optional[str] = None
    instance_title: Optional[str] = None
    instance_created_at: Optional[str] = None
    created: Optional[str] = None
    initiated_by: str = 'Doctor'


class FileIdRequest(CamelModel):
    file_id: str = Field(min_length=1)

    @field_validator('file_id', mode='before')
    @classmethod
    def coerce_file_id(cls, value):
        return _as_id(value)
