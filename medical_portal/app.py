import logging

from dotenv import load_dotenv
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

load_dotenv() # Load env vars before reading config

from medical_portal.check import check_docspace_command
from medical_portal.config import load_config, validate_config
from medical_portal.models import db
from medical_portal.services.docspace_service import DocSpaceService
from medical_portal.utils import api_error


def create_app(overrides=None):
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    # --- CONFIGURATION ---
    load_config(app, overrides)
    logging.basicConfig(level=app.config['LOG_LEVEL'])
    app.logger.setLevel(app.config['LOG_LEVEL'])

    for problem in validate_config(app.config):
        app.logger.warning(f"Config: {problem}")

    db.init_app(app)
    app.extensions['docspace'] = DocSpaceService.from_config(app.config)

    # --- BLUEPRINTS ---
    from medical_portal.routes.health import health_bp
    from medical_portal.routes.patients import patients_bp
    from medical_portal.routes.doctor import doctor_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(patients_bp)
    app.register_blueprint(doctor_bp)

    if app.config.get('ENABLE_DEBUG_API'):
        from medical_portal.routes.debug import debug_bp
        app.register_blueprint(debug_bp)

    @app.errorhandler(404)
    def not_found_error(error):
        return api_error("Not found", status=404)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return api_error("Internal server error", status=500)

    app.cli.add_command(check_docspace_command)

    with app.app_context():
        db.create_all()

    return app
