import logging
import os

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from dotenv import load_dotenv

db = SQLAlchemy()
login_manager = LoginManager()


def create_app(config_name=None):
    load_dotenv()

    app = Flask(__name__)

    if config_name is None:
        config_name = os.getenv("FLASK_ENV", "default")
    from .config import config
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db.init_app(app)
    login_manager.init_app(app)
    # booking ids with a modification submission in flight
    app.extensions["aerox_processing"] = set()

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"ok": False, "error": "Please log in to continue."}), 401

    @app.route("/")
    def home():
        return jsonify({"ok": True, "service": "aerox-bookings"})

    # register blueprints
    from .auth import auth_bp
    app.register_blueprint(auth_bp)

    from .my_bookings import bookings_bp
    app.register_blueprint(bookings_bp)

    from .requests import requests_bp
    app.register_blueprint(requests_bp)

    from .admin_dashboard import admin_dashboard_bp
    app.register_blueprint(admin_dashboard_bp)

    # create tables
    with app.app_context():
        from . import models
        db.create_all()

    return app
