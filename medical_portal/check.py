import click
from flask import current_app
from flask.cli import with_appcontext

from medical_portal.config import validate_config
from medical_portal.services.docspace_service import get_docspace


def _line(level, message):
    click.echo(f"[{level}] {message}")


@click.command('check-docspace')
@with_appcontext
def check_docspace_command():
    """Checks DocSpace configuration, the forms room and the auto fill & sign template."""
    failures = 0

    problems = validate_config(current_app.config)
    for problem in problems:
        _line('FAIL', problem)
        failures += 1
    if not problems:
        _line('OK', f"DocSpace configured at {current_app.config['DOCSPACE_BASE_URL']}")
    if not current_app.config.get('DOCSPACE_DOCTOR_EMAIL'):
        _line('WARN', "DOCSPACE_DOCTOR_EMAIL is not set, requests will be attributed to 'Doctor'")

    docspace = get_docspace()
    if not problems and current_app.config.get('DOCSPACE_DOCTOR_EMAIL'):
        try:
            profile = docspace.get_doctor_profile() or {}
            _line('OK', f"Doctor account: {profile.get('displayName') or profile.get('email')}")
        except Exception as e:
            _line('WARN', f"Doctor account lookup failed: {e}")

    if not problems:
        try:
            room = docspace.require_forms_room()
            _line('OK', f"Forms room: {room.get('title')} ({room.get('id')})")
        except Exception as e:
            _line('FAIL', f"Forms room lookup failed: {e}")
            failures += 1

    template_id = current_app.config.get('DOCSPACE_AUTO_FILL_SIGN_TEMPLATE_ID')
    if not template_id:
        _line('WARN', "DOCSPACE_AUTO_FILL_SIGN_TEMPLATE_ID is not set, skipping template check")
    elif not problems:
        try:
            link = docspace.get_fill_out_link(template_id)
            if link and link.get('shareLink'):
                _line('OK', f"Template {template_id} fill-out link: {link['shareLink']}")
            else:
                _line('FAIL', f"Template {template_id} has no external fill-out link")
                failures += 1
        except Exception as e:
            _line('FAIL', f"Template {template_id} lookup failed: {e}")
            failures += 1

    if failures:
        raise click.exceptions.Exit(1)
