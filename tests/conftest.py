from collections import Counter

import pytest

from medical_portal.app import create_app
from medical_portal.models import db
from medical_portal.schemas import Assignment
from medical_portal.services.docspace_service import DocSpaceError
from medical_portal.utils import normalize


class FakeDocSpace:
    """In-memory DocSpace client; `calls` counts every method invocation."""

    def __init__(self):
        self.calls = Counter()
        self.listed = []
        self.forms_room = {'id': 'forms-room', 'title': 'Medical Room', 'webUrl': 'https://docspace.test/rooms/forms'}
        self.parents = {
            'in_process': {'id': 'in-process', 'title': 'In Process'},
            'complete': {'id': 'complete', 'title': 'Complete'},
            'templates': {'id': 'templates', 'title': 'Templates'}
        }
        self.folders = {}
        self.files = {}
        self.fill_out_links = {}
        self.rooms = []
        self.profile = {}
        self.failing_folders = set()
        self.failing_files = set()
        self.failing_rooms = set()
        self.folders_by_title = {}
        self.created_links = []
        self.link_creation_fails = False

    # -- fixture helpers --

    def add_folder(self, parent_id, folder_id, title):
        self.folders.setdefault(str(parent_id), []).append({'id': folder_id, 'title': title, 'type': 'folder'})
        self.folders.setdefault(str(folder_id), [])

    def add_file(self, folder_id, file_id, title, created='', status=None, comment=None):
        self.folders.setdefault(str(folder_id), []).append({'id': file_id, 'title': title, 'type': 'file'})
        self.files[str(file_id)] = {
            'id': file_id,
            'title': title,
            'created': created,
            'formFillingStatus': status,
            'comment': comment
        }

    # -- client surface --

    def require_forms_room(self):
        self.calls['require_forms_room'] += 1
        if not self.forms_room:
            raise DocSpaceError("Forms room not found: Medical Room", status=404)
        return self.forms_room

    def get_forms_room_folders(self, room_id):
        self.calls['get_forms_room_folders'] += 1
        return self.parents

    def get_folder_contents(self, folder_id, auth=None):
        self.calls['get_folder_contents'] += 1
        self.listed.append(str(folder_id))
        if str(folder_id) in self.failing_folders:
            raise DocSpaceError("listing failed", status=500)
        return {'id': folder_id, 'title': 'Folder', 'items': list(self.folders.get(str(folder_id), []))}

    def get_folder_by_title_within(self, parent_id, title):
        self.calls['get_folder_by_title_within'] += 1
        return self.folders_by_title.get((str(parent_id), normalize(title)))

    def get_file_info(self, file_id):
        self.calls['get_file_info'] += 1
        if str(file_id) in self.failing_files:
            raise DocSpaceError("file info failed", status=500)
        return self.files.get(str(file_id))

    def get_fill_out_link(self, file_id):
        self.calls['get_fill_out_link'] += 1
        return self.fill_out_links.get(str(file_id))

    def set_file_external_link(self, file_id, auth='', access='Read'):
        self.calls['set_file_external_link'] += 1
        self.created_links.append((str(file_id), access))
        if self.link_creation_fails:
            raise DocSpaceError("Forbidden", status=403)
        return {'shareLink': f"https://docspace.test/s/ext-{file_id}", 'shareToken': f"ext-{file_id}"}

    def get_doctor_profile(self):
        self.calls['get_doctor_profile'] += 1
        return {'id': 'doc-1', 'displayName': 'Dr. Gregory House', 'email': 'doctor@clinic.test'}

    def get_self_profile(self, auth):
        self.calls['get_self_profile'] += 1
        return self.profile

    def list_rooms(self, auth=None):
        self.calls['list_rooms'] += 1
        return self.rooms

    def find_room_by_candidates(self, titles, auth=None):
        self.calls['find_room_by_candidates'] += 1
        candidates = [normalize(title) for title in titles]
        return next((room for room in self.rooms if normalize(room['title']) in candidates), None)

    def get_room_info(self, room_id, auth=None):
        self.calls['get_room_info'] += 1
        if str(room_id) in self.failing_rooms:
            raise DocSpaceError("Forbidden", status=403)
        room = next((r for r in self.rooms if str(r['id']) == str(room_id)), None)
        return room or {'id': room_id, 'title': 'Patient Room', 'webUrl': None}

    def get_room_summary(self, room_id, auth=None):
        self.calls['get_room_summary'] += 1
        return [{'id': 'f1', 'title': 'Documents', 'filesCount': 2, 'foldersCount': 0}]


def make_assignment(assignment_id, created_at, template_title='Consent Form.pdf', share_link=None, requested_by=None):
    return Assignment(
        id=assignment_id,
        template_file_id='tpl-1',
        template_title=template_title,
        created_at=created_at,
        share_link=share_link or f"https://docspace.test/s/{assignment_id}",
        requested_by=requested_by,
        patient_room_id='patient-room'
    )


@pytest.fixture
def docspace():
    return FakeDocSpace()


@pytest.fixture
def app(docspace):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'DOCSPACE_BASE_URL': 'https://docspace.test',
        'DOCSPACE_AUTH_TOKEN': 'service-token',
        'DOCSPACE_DOCTOR_EMAIL': 'doctor@clinic.test',
        'DOCSPACE_AUTO_FILL_SIGN_TEMPLATE_ID': '',
        'ENABLE_DEBUG_API': True
    })
    app.extensions['docspace'] = docspace
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()
