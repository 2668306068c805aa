import logging
import os

import click
from flask import Flask, jsonify

from app.config import Config
from app.extensions import db, migrate, bcrypt, jwt, mail, cors


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s [%(name)s] %(message)s')
    logging.getLogger('app').setLevel(level)


def create_app(config_class=Config):
    """Flask application factory"""
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app)
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    jwt.init_app(app)
    mail.init_app(app)
    cors.init_app(app, resources={r'/api/*': {'origins': app.config['CORS_ORIGINS']}}, supports_credentials=True)

    from app import models, auth  # noqa: F401  (tables and JWT user loaders)
    from app.errors import register_error_handlers
    from app.services.sms_service import init_sms

    register_error_handlers(app)
    init_sms(app)

    # Import controllers (blueprints) for each module
    from app.controllers.auth_controller import auth_bp
    from app.controllers.user_controller import user_bp
    from app.controllers.blood_bank_controller import blood_bank_bp
    from app.controllers.donation_request_controller import donation_request_bp
    from app.controllers.donor_controller import donor_bp
    from app.controllers.admin_controller import admin_bp
    from app.controllers.blood_drive_controller import blood_drive_bp
    from app.controllers.notification_controller import notification_bp
    from app.controllers.support_controller import support_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(user_bp, url_prefix='/api/users')
    app.register_blueprint(blood_bank_bp, url_prefix='/api/blood-bank')
    app.register_blueprint(donation_request_bp, url_prefix='/api/requests')
    app.register_blueprint(donor_bp, url_prefix='/api/donor')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(blood_drive_bp, url_prefix='/api/drives')
    app.register_blueprint(notification_bp, url_prefix='/api/notifications')
    app.register_blueprint(support_bp, url_prefix='/api/support')

    @app.route('/api/health')
    def health():
        return jsonify({'success': True, 'message': 'Server is running'})

    register_commands(app)
    return app


def register_commands(app):
    @app.cli.command('create-admin')
    @click.argument('name')
    @click.argument('email')
    @click.argument('password')
    @click.option('--phone', default='1234567890', help='Contact phone for the admin account.')
    def create_admin(name, email, password, phone):
        """Create an admin account."""
        from app.models import User

        if User.query.filter_by(email=email).first():
            raise click.ClickException(f'User with email {email} already exists.')
        admin = User(name=name, email=email, phone=phone, role='admin')
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        click.echo(f'[OK] Created admin {email}')

    @app.cli.command('expire-units')
    def expire_units_command():
        """Mark Available blood units past their expiry date as Expired."""
        from app.services.inventory import expire_units

        count = expire_units()
        click.echo(f'[OK] Expired {count} blood units')
