import logging
from urllib.parse import parse_qs, urlparse

import requests
from flask import current_app

from medical_portal.utils import normalize, normalize_auth_header

# Configure logging
logger = logging.getLogger(__name__)


class DocSpaceError(Exception):
    """Non-2xx answer (or transport failure) from the DocSpace API."""

    def __init__(self, message, status=None, details=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details


class ConfigurationError(DocSpaceError):
    def __init__(self, message):
        super().__init__(message, status=500)


class DocSpaceService:
    API = '/api/2.0'
    PATIENT_ROOM_SUFFIX = ' - Patient Room'
    IN_PROCESS_FOLDER_TITLE = 'In Process'
    COMPLETE_FOLDER_TITLE = 'Complete'

    def __init__(self, base_url, auth_token='', doctor_email='', forms_room_title='Medical Room',
                 forms_room_fallbacks=None, templates_folder_title='Templates', timeout=15):
        self.base_url = (base_url or '').rstrip('/')
        self.auth_header = normalize_auth_header(auth_token)
        self.doctor_email = doctor_email or ''
        self.forms_room_title = forms_room_title
        self.forms_room_fallbacks = list(forms_room_fallbacks or [])
        self.templates_folder_title = templates_folder_title
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        return cls(
            base_url=config.get('DOCSPACE_BASE_URL'),
            auth_token=config.get('DOCSPACE_AUTH_TOKEN'),
            doctor_email=config.get('DOCSPACE_DOCTOR_EMAIL'),
            forms_room_title=config.get('DOCSPACE_FORMS_ROOM_TITLE', 'Medical Room'),
            forms_room_fallbacks=config.get('DOCSPACE_FORMS_ROOM_TITLE_FALLBACKS'),
            templates_folder_title=config.get('DOCSPACE_FORMS_TEMPLATES_FOLDER_TITLE', 'Templates'),
            timeout=config.get('DOCSPACE_TIMEOUT', 15)
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _require_config(self, requires_auth=True):
        if not self.base_url:
            raise ConfigurationError("DOCSPACE_BASE_URL is not set")
        if requires_auth and not self.auth_header:
            raise ConfigurationError("DOCSPACE_AUTH_TOKEN is not set")

    def _request(self, path, method='GET', body=None, auth=None, params=None):
        """
        Calls the DocSpace API and unwraps its {"response": ...} envelope.
        `auth` is a user token forwarded from the portal; without it the
        service token is used.
        """
        self._require_config(requires_auth=not auth)
        headers = {
            "Content-Type": "application/json",
            "Authorization": normalize_auth_header(auth) or self.auth_header
        }
        url = f"{self.base_url}{self.API}{path}"

        try:
            response = requests.request(method, url, headers=headers, json=body, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"DocSpace {method} {path} failed: {e}")
            raise DocSpaceError(f"DocSpace request failed: {e}", status=502)

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            message = None
            if isinstance(data, dict):
                message = data.get('error') or data.get('message')
                if isinstance(message, dict):
                    message = message.get('message')
            message = message or response.reason or f"HTTP {response.status_code}"
            raise DocSpaceError(str(message), status=response.status_code, details=data)

        if isinstance(data, dict) and 'response' in data:
            return data['response']
        return data

    # ------------------------------------------------------------------
    # People
    # ------------------------------------------------------------------

    def get_self_profile(self, auth):
        """Profile of the user owning `auth` (a patient token)."""
        if not auth:
            raise DocSpaceError("User token is required", status=401)
        return self._request('/people/@self', auth=auth)

    def get_user_by_email(self, email):
        if not email:
            return None
        return self._request('/people/email', params={'email': email})

    def get_doctor_profile(self):
        return self.get_user_by_email(self.doctor_email)

    # ------------------------------------------------------------------
    # Rooms & folders
    # ------------------------------------------------------------------

    def list_rooms(self, auth=None):
        data = self._request('/files/rooms', auth=auth)
        return (data or {}).get('folders') or []

    def find_room_by_candidates(self, titles, auth=None):
        candidates = [normalize(title) for title in (titles or []) if title]
        if not candidates:
            return None
        for room in self.list_rooms(auth=auth):
            if normalize(room.get('title')) in candidates:
                return {
                    'id': room.get('id'),
                    'title': room.get('title'),
                    'webUrl': room.get('webUrl') or room.get('shortWebUrl')
                }
        return None

    def require_forms_room(self):
        """The shared Form Filling room holding templates and filled instances."""
        room = self.find_room_by_candidates([self.forms_room_title] + self.forms_room_fallbacks)
        if not room or not room.get('id'):
            raise DocSpaceError(f"Forms room not found: {self.forms_room_title}", status=404)
        return room

    def get_room_info(self, room_id, auth=None):
        if not room_id:
            return None
        content = self._request(f'/files/{room_id}', auth=auth) or {}
        current = content.get('current') or content
        return {
            'id': current.get('id') or room_id,
            'title': current.get('title') or 'Patient Room',
            'webUrl': current.get('webUrl') or current.get('shortWebUrl')
        }

    def get_room_summary(self, room_id, auth=None):
        content = self._request(f'/files/{room_id}', auth=auth) or {}
        return [
            {
                'id': folder.get('id'),
                'title': folder.get('title'),
                'filesCount': folder.get('filesCount') or 0,
                'foldersCount': folder.get('foldersCount') or 0
            }
            for folder in content.get('folders') or []
        ]

    @staticmethod
    def _match_folder(folders, title):
        """Exact normalized title first, then the first folder containing it."""
        target = normalize(title)
        if not target:
            return None
        match = next((f for f in folders if normalize(f.get('title')) == target), None)
        if not match:
            match = next((f for f in folders if target in normalize(f.get('title'))), None)
        if not match:
            return None
        return {'id': match.get('id'), 'title': match.get('title')}

    def get_folder_by_title_within(self, parent_id, title):
        if not parent_id or not title:
            return None
        content = self._request(f'/files/{parent_id}') or {}
        return self._match_folder(content.get('folders') or [], title)

    def get_forms_room_folders(self, room_id):
        """Locates the In Process / Complete / templates folders of the forms room with one listing."""
        content = self._request(f'/files/{room_id}') or {}
        folders = content.get('folders') or []
        return {
            'in_process': self._match_folder(folders, self.IN_PROCESS_FOLDER_TITLE),
            'complete': self._match_folder(folders, self.COMPLETE_FOLDER_TITLE),
            'templates': self._match_folder(folders, self.templates_folder_title)
        }

    def get_folder_contents(self, folder_id, auth=None):
        content = self._request(f'/files/{folder_id}', auth=auth) or {}
        current = content.get('current') or {}
        folders = [
            {'id': folder.get('id'), 'title': folder.get('title'), 'type': 'folder'}
            for folder in content.get('folders') or []
        ]
        files = [
            {
                'id': file.get('id'),
                'title': file.get('title'),
                'type': 'file',
                'openUrl': file.get('webUrl') or file.get('viewUrl')
            }
            for file in content.get('files') or []
        ]
        return {
            'id': current.get('id') or content.get('id') or folder_id,
            'title': current.get('title') or content.get('title') or 'Folder',
            'items': folders + files
        }

    # ------------------------------------------------------------------
    # Files & links
    # ------------------------------------------------------------------

    def get_file_info(self, file_id):
        if not file_id:
            return None
        return self._request(f'/files/file/{file_id}')

    def get_file_links(self, file_id):
        data = self._request(f'/files/file/{file_id}/links')
        if isinstance(data, dict):
            data = data.get('items') or []
        return data or []

    def get_fill_out_link(self, file_id):
        """
        Existing external link of a file, preferring the one DocSpace titles
        "Fill out" (created by Form Filling rooms). None when the file has no
        external link.
        """
        if not file_id:
            return None
        candidates = []
        for link in self.get_file_links(file_id):
            shared = link.get('sharedLink') or link
            share_link = shared.get('shareLink')
            if not share_link or shared.get('internal'):
                continue
            candidates.append({
                'shareLink': share_link,
                'title': shared.get('title'),
                'requestToken': shared.get('requestToken'),
                'shareToken': self.extract_share_token(share_link)
            })
        if not candidates:
            return None
        fill_out = next((c for c in candidates if 'fill out' in normalize(c['title'])), None)
        return fill_out or candidates[0]

    def set_file_external_link(self, file_id, auth='', access='Read'):
        if not file_id:
            raise DocSpaceError("fileId is required", status=400)
        body = {
            "access": access,
            "internal": False,
            "primary": True
        }
        path = f'/files/file/{file_id}/links'
        try:
            response = self._request(path, method='PUT', body=body, auth=auth or None)
        except DocSpaceError as e:
            # Patient tokens usually cannot create external links
            if auth and e.status == 403:
                logger.info(f"User token refused link creation for {file_id}, retrying with service token")
                response = self._request(path, method='PUT', body=body)
            else:
                raise

        shared = (response or {}).get('sharedLink') or response or {}
        share_link = shared.get('shareLink')
        return {
            'shareLink': share_link,
            'shareToken': self.extract_share_token(share_link)
        }

    @staticmethod
    def extract_share_token(share_link):
        if not share_link:
            return None
        try:
            parsed = urlparse(share_link)
        except ValueError:
            return None
        token = parse_qs(parsed.query).get('share')
        if token:
            return token[0]
        parts = [part for part in parsed.path.split('/') if part]
        if 's' in parts:
            index = parts.index('s')
            if index + 1 < len(parts):
                return parts[index + 1]
        return None

    # ------------------------------------------------------------------
    # Patient room naming
    # ------------------------------------------------------------------

    @classmethod
    def is_patient_room(cls, title):
        return str(title or '').endswith(cls.PATIENT_ROOM_SUFFIX)

    @classmethod
    def patient_name_from_room(cls, title):
        value = str(title or '')
        return value[:-len(cls.PATIENT_ROOM_SUFFIX)] if cls.is_patient_room(value) else value

    @classmethod
    def patient_room_title(cls, name):
        return f"{name}{cls.PATIENT_ROOM_SUFFIX}" if name else ''


def get_docspace():
    """DocSpace client bound to the current application."""
    return current_app.extensions['docspace']
