import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from . import db, state
from .identity import IdentityContext
from .models import User

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _identity_json(user) -> dict:
    identity = IdentityContext.from_user(user)
    return {"id": identity.id, "email": identity.email, "displayName": identity.display_name, "isStaff": user.is_staff}


# login: validate credentials and start a session
@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or request.form or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        logger.info("Failed login for %s", email)
        return jsonify({"ok": False, "error": "Invalid email or password."}), 401

    login_user(user)
    return jsonify({"ok": True, "user": _identity_json(user)})


# registration with duplicate / staff-domain checks
@auth_bp.route("/register", methods=["POST"])
def register():
    data = request.get_json(silent=True) or request.form or {}
    email = (data.get("email") or "").strip().lower()
    pwd = data.get("password") or ""
    confirm = data.get("confirm") or ""
    name = (data.get("name") or "").strip() or None

    if not email or not pwd:
        return jsonify({"ok": False, "error": "Email and password are required."}), 400

    # staff accounts are seeded, never self-registered
    domain = current_app.config["STAFF_EMAIL_DOMAIN"].lower()
    if email.endswith("@" + domain):
        return jsonify({"ok": False, "error": "Staff accounts are created by AeroX admin. Please use a personal email."}), 403

    if pwd != confirm:
        return jsonify({"ok": False, "error": "Passwords do not match."}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({"ok": False, "error": "Email already registered."}), 409

    user = User(email=email, display_name=name)
    user.set_password(pwd)
    db.session.add(user)
    db.session.commit()
    logger.info("Registered user %s", email)
    return jsonify({"ok": True, "user": _identity_json(user)}), 201


@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"ok": True, "user": _identity_json(current_user)})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    state.clear_draft()
    logout_user()
    return jsonify({"ok": True})
