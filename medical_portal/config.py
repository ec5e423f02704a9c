import os

DEFAULT_FORMS_ROOM_TITLE = 'Medical Room'
DEFAULT_FORMS_ROOM_FALLBACKS = 'Medical Forms'
DEFAULT_TEMPLATES_FOLDER_TITLE = 'Templates'
DEFAULT_DATABASE_URL = 'sqlite:///medical_portal.db'


def _split_titles(value):
    return [item.strip() for item in (value or '').split(',') if item.strip()]


def _first_env(*names):
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return ''


def get_database_url():
    database_url = os.environ.get('DATABASE_URL')
    # Heroku/Supabase style URLs use the legacy scheme SQLAlchemy no longer accepts
    if database_url and database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url or DEFAULT_DATABASE_URL


def load_config(app, overrides=None):
    """Reads environment settings into app.config; `overrides` wins over the environment."""
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'medical-portal-dev-key')
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO').upper()
    app.config['APP_ENV'] = os.environ.get('APP_ENV', 'development').lower()

    app.config['SQLALCHEMY_DATABASE_URI'] = get_database_url()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # DocSpace
    app.config['DOCSPACE_BASE_URL'] = os.environ.get('DOCSPACE_BASE_URL', '').rstrip('/')
    app.config['DOCSPACE_AUTH_TOKEN'] = _first_env(
        'DOCSPACE_AUTHORIZATION', 'DOCSPACE_AUTH_TOKEN', 'DOCSPACE_API_KEY'
    )
    app.config['DOCSPACE_DOCTOR_EMAIL'] = os.environ.get('DOCSPACE_DOCTOR_EMAIL', '')
    app.config['DOCSPACE_FORMS_ROOM_TITLE'] = os.environ.get('DOCSPACE_FORMS_ROOM_TITLE', DEFAULT_FORMS_ROOM_TITLE)
    app.config['DOCSPACE_FORMS_ROOM_TITLE_FALLBACKS'] = _split_titles(
        os.environ.get('DOCSPACE_FORMS_ROOM_TITLE_FALLBACKS', DEFAULT_FORMS_ROOM_FALLBACKS)
    )
    app.config['DOCSPACE_FORMS_TEMPLATES_FOLDER_TITLE'] = os.environ.get(
        'DOCSPACE_FORMS_TEMPLATES_FOLDER_TITLE', DEFAULT_TEMPLATES_FOLDER_TITLE
    )
    app.config['DOCSPACE_AUTO_FILL_SIGN_TEMPLATE_ID'] = os.environ.get('DOCSPACE_AUTO_FILL_SIGN_TEMPLATE_ID', '')
    app.config['DOCSPACE_TIMEOUT'] = float(os.environ.get('DOCSPACE_TIMEOUT', '15'))

    # Diagnostics stay off in production unless explicitly enabled
    app.config['ENABLE_DEBUG_API'] = (
        os.environ.get('ENABLE_DEBUG_API', '').lower() == 'true' or app.config['APP_ENV'] != 'production'
    )

    if overrides:
        app.config.update(overrides)
    return app.config


def validate_config(config, requires_auth=True):
    """Returns the list of configuration problems (empty when usable)."""
    errors = []
    if not config.get('DOCSPACE_BASE_URL'):
        errors.append("DOCSPACE_BASE_URL is not set")
    if requires_auth and not config.get('DOCSPACE_AUTH_TOKEN'):
        errors.append("DOCSPACE_AUTH_TOKEN (or DOCSPACE_AUTHORIZATION) is not set")
    return errors
