"""
Fill & Sign status reconciliation.

DocSpace does not link a filled form back to the request that produced it, so
every assignment stored by the portal is matched against the forms room at
read time. Instances are recognised by their auto-generated titles
("{patient} - {template}" or "{n} - {patient} - {template}") inside the
template's folder under "In Process" and "Complete", then paired with
assignments oldest-first.
"""
import logging
import re
from collections import deque

from flask import current_app

from medical_portal.schemas import (
    STATUS_ACTION,
    STATUS_COMPLETED,
    Assignment,
    Instance,
    ResolvedAssignment,
)
from medical_portal.services.docspace_service import get_docspace
from medical_portal.utils import call_quietly, normalize, strip_extension

logger = logging.getLogger(__name__)

_DASHES_RE = re.compile('[–—]')

SUBMITTED_STATUS = 'complete'
SUBMITTED_COMMENT = 'submitted form'


def _canonical_title(value):
    return normalize(_DASHES_RE.sub('-', str(value or '')))


def matches_instance_title(title, patient_name, template_base):
    """True when `title` is a generated instance of `template_base` for `patient_name`."""
    t = _canonical_title(title)
    p = _canonical_title(patient_name)
    base = _canonical_title(template_base)
    if not t or not p or not base:
        return False

    direct_prefix = f"{p} -"
    if t.startswith(direct_prefix):
        return base in t[len(direct_prefix):]

    # Colliding instances get a sequence number: "5 - John Smith - Template"
    numbered = re.match(rf'^\d+\s*-\s*{re.escape(p)}\s*-\s*', t)
    if numbered:
        return base in t[numbered.end():]
    return False


def is_submitted(instance):
    """DocSpace may flag an instance complete before moving it to the Complete folder."""
    if normalize(instance.form_filling_status) == SUBMITTED_STATUS:
        return True
    return normalize(instance.comment) == SUBMITTED_COMMENT


def filter_by_tab(results, tab):
    """'completed' keeps completed items; any other tab keeps the rest."""
    if normalize(tab) == STATUS_COMPLETED:
        return [item for item in results if item.status == STATUS_COMPLETED]
    return [item for item in results if item.status != STATUS_COMPLETED]


def _as_assignment(value):
    if isinstance(value, Assignment):
        return value
    if hasattr(value, 'to_schema'):
        return value.to_schema()
    return Assignment.model_validate(value)


def _folder_id(folder):
    if not folder:
        return None
    return folder.get('id')


class FillSignService:
    def __init__(self, docspace, doctor_email=None):
        self.docspace = docspace
        self.doctor_email = doctor_email

    # ------------------------------------------------------------------
    # Lookups (failures degrade to "no data")
    # ------------------------------------------------------------------

    def _folder_items(self, folder_id):
        contents = call_quietly(self.docspace.get_folder_contents, folder_id, default=None)
        return (contents or {}).get('items') or []

    def resolve_form_folder_ids(self, parent_folder_id, template_title, cache):
        """
        Ids of the sub-folders of `parent_folder_id` named after the template.
        A template may sit under more than one folder (with and without
        extension), so every match is returned.
        """
        if not parent_folder_id:
            return []
        base = strip_extension(template_title)
        key = (str(parent_folder_id), normalize(base or template_title))
        if key in cache:
            return cache[key]

        targets = {normalize(base), normalize(template_title)} - {''}
        matches = []
        for item in self._folder_items(parent_folder_id):
            if item.get('type') != 'folder' or item.get('id') is None:
                continue
            folder_id = str(item['id'])
            if normalize(item.get('title')) in targets and folder_id not in matches:
                matches.append(folder_id)

        cache[key] = matches
        return matches

    def list_instances(self, folder_ids, patient_name, template_title, file_info_cache):
        """Instances across all `folder_ids`, oldest first."""
        base = strip_extension(template_title)
        instances = []
        for folder_id in [f for f in folder_ids or [] if f]:
            for item in self._folder_items(folder_id):
                if item.get('type') != 'file':
                    continue
                if not matches_instance_title(item.get('title'), patient_name, base):
                    continue
                file_id = str(item.get('id') or '')
                if not file_id:
                    continue

                if file_id not in file_info_cache:
                    file_info_cache[file_id] = call_quietly(self.docspace.get_file_info, file_id, default=None)
                info = file_info_cache[file_id] or {}

                instances.append(Instance(
                    id=file_id,
                    title=str(info.get('title') or item.get('title') or ''),
                    created_at=str(info.get('created') or info.get('createdAt') or ''),
                    form_filling_status=info.get('formFillingStatus'),
                    comment=info.get('comment'),
                    folder_id=str(folder_id)
                ))

        # ISO-8601 strings sort chronologically; sort is stable for equal stamps
        instances.sort(key=lambda instance: instance.created_at)
        return instances

    def ensure_public_view_link(self, file_id):
        link = call_quietly(self.docspace.get_fill_out_link, file_id, default=None)
        if link and link.get('shareLink'):
            return link
        external = call_quietly(self.docspace.set_file_external_link, str(file_id), '', access='Read', default=None)
        if external and external.get('shareLink'):
            return external
        return None

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def _result(self, assignment, status, open_url, instance=None):
        return ResolvedAssignment(
            assignment_id=assignment.id,
            template_file_id=assignment.template_file_id or None,
            title=assignment.template_title or 'Form',
            open_url=open_url or None,
            status=status,
            instance_file_id=instance.id if instance else None,
            instance_title=instance.title if instance else None,
            instance_created_at=(instance.created_at or None) if instance else None,
            created=assignment.created_at or None,
            initiated_by=assignment.requested_by or self.doctor_email or 'Doctor'
        )

    def _resolve_cohort(self, cohort, patient_name, parents, folder_cache, file_info_cache):
        ordered = sorted(cohort, key=lambda a: a.created_at or '')
        template_title = ordered[0].template_title or ''
        template_base = strip_extension(template_title) or template_title

        in_process_ids = self.resolve_form_folder_ids(parents['in_process'], template_title, folder_cache)
        complete_ids = self.resolve_form_folder_ids(parents['complete'], template_title, folder_cache)

        in_process = self.list_instances(in_process_ids, patient_name, template_base, file_info_cache)
        complete = self.list_instances(complete_ids, patient_name, template_base, file_info_cache)

        # Pairing priority: Complete folder, submitted-but-not-moved, still being filled
        sources = [
            (deque(complete), STATUS_COMPLETED),
            (deque(i for i in in_process if is_submitted(i)), STATUS_COMPLETED),
            (deque(i for i in in_process if not is_submitted(i)), STATUS_ACTION),
        ]

        results = []
        for assignment in ordered:
            sent_link = assignment.share_link
            source = next(((queue, status) for queue, status in sources if queue), None)
            if source is None:
                results.append(self._result(assignment, STATUS_ACTION, sent_link))
                continue

            queue, status = source
            instance = queue.popleft()
            if status == STATUS_COMPLETED:
                link = self.ensure_public_view_link(instance.id)
                open_url = (link or {}).get('shareLink') or sent_link
                results.append(self._result(assignment, STATUS_COMPLETED, open_url, instance))
            else:
                results.append(self._result(assignment, STATUS_ACTION, sent_link, instance))
        return results

    def resolve_assignments(self, assignments, patient_name=None):
        """
        Classifies every assignment as "action" or "completed", most recent
        first. Raises only when the forms room itself cannot be found.
        """
        assignments = [_as_assignment(a) for a in assignments or []]
        safe_patient_name = str(patient_name or '').strip()

        if not safe_patient_name:
            # Nothing to match instance titles against
            results = [self._result(a, STATUS_ACTION, a.share_link) for a in assignments]
        else:
            room = self.docspace.require_forms_room()
            folders = call_quietly(self.docspace.get_forms_room_folders, room['id'], default=None) or {}
            parents = {
                'in_process': _folder_id(folders.get('in_process')),
                'complete': _folder_id(folders.get('complete'))
            }
            if not parents['in_process'] or not parents['complete']:
                logger.warning(f"Forms room {room['id']} is missing In Process/Complete folders: {parents}")

            folder_cache = {}
            file_info_cache = {}

            cohorts = {}
            for assignment in assignments:
                title = assignment.template_title or ''
                cohorts.setdefault(normalize(strip_extension(title) or title), []).append(assignment)

            results = []
            for cohort in cohorts.values():
                results.extend(self._resolve_cohort(
                    cohort, safe_patient_name, parents, folder_cache, file_info_cache
                ))

        results.sort(key=lambda item: item.created or '', reverse=True)
        return results


def resolve_fill_sign_assignments(docspace, assignments, patient_name=None, doctor_email=None):
    return FillSignService(docspace, doctor_email=doctor_email).resolve_assignments(
        assignments, patient_name=patient_name
    )


def get_fill_sign_service():
    return FillSignService(get_docspace(), doctor_email=current_app.config.get('DOCSPACE_DOCTOR_EMAIL'))
