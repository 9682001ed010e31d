from flask import Flask
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .errors import register_error_handlers
from .extensions import db, migrate, jwt, mail
from .routes import analytics, auth, certificates, courses, enrollments, payments, users


def create_app(config_object=Config):
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)
    CORS(app, resources={r"/*": {"origins": "*"}})
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)

    register_error_handlers(app)

    # Register blueprints
    app.register_blueprint(auth.bp, url_prefix="/auth")
    app.register_blueprint(courses.bp, url_prefix="/courses")
    app.register_blueprint(enrollments.bp, url_prefix="/enrollments")
    app.register_blueprint(payments.bp, url_prefix="/payments")
    app.register_blueprint(users.bp, url_prefix="/users")
    app.register_blueprint(analytics.bp, url_prefix="/analytics")
    app.register_blueprint(certificates.bp, url_prefix="/pdf/certificates")

    return app
