import logging

import click
from flask import Flask
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()


def configure_logging(app):
    level = logging.getLevelName(str(app.config.get('LOG_LEVEL', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger = logging.getLogger('resort')
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s [%(name)s] %(message)s'))
        logger.addHandler(handler)
    app.logger.setLevel(level)


def create_app(config_object='resort.config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    CORS(app, resources={r'/api/*': {'origins': app.config['CORS_ORIGINS']}})

    from resort.auth import register_jwt_callbacks
    from resort.errors import register_error_handlers
    register_jwt_callbacks(jwt)
    register_error_handlers(app, db)

    with app.app_context():
        from resort import models  # noqa: F401
        from resort import routes
        app.register_blueprint(routes.api)

        db.create_all()

    register_commands(app)

    return app


def register_commands(app):
    @app.cli.command('create-admin')
    @click.argument('username')
    @click.password_option()
    def create_admin(username, password):
        """Create an admin account or reset its password and role."""
        from resort.users import CredentialStore
        user, created = CredentialStore(db.session).ensure_admin(username, password)
        click.echo('Admin {} {}.'.format(user.username, 'created' if created else 'updated'))
