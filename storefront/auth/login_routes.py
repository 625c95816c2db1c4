# storefront/auth/login_routes.py
# JSON session login for staff; the admin tool talks to this with cookies
from flask import Blueprint, jsonify, request
from flask_login import login_user, logout_user, login_required, current_user

from storefront.models.user import User

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.post("/login")
def login():
    body = request.get_json(silent=True) or request.form
    username = (body.get("username") or "").strip()
    password = body.get("password") or ""

    user = User.query.filter_by(username=username).first()
    if user and user.check_password(password):
        login_user(user)
        return jsonify({"ok": True, "user": {"id": user.id, "username": user.username}}), 200
    return jsonify({"ok": False, "error": "Invalid credentials"}), 401


@auth_bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify({"ok": True, "user": {"id": current_user.id, "username": current_user.username}}), 200
