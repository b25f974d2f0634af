"""Authentication blueprint: session login for staff and guardians."""

from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, jsonify, session
from flask_login import current_user, login_user, logout_user
from flask_wtf import FlaskForm
from flask_wtf.csrf import generate_csrf
from sqlalchemy import func, select
from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import DataRequired, Email

from sessionbook.auth import login_required_json
from sessionbook.extensions import db, limiter
from sessionbook.models import User, UserRole
from sessionbook.security import auth_rate_limit
from sessionbook.services.audit import log_login_attempt


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember me")


auth_bp = Blueprint("auth", __name__)


def serialize_user(user: User) -> dict:
    return {
        'id': user.id,
        'email': user.email,
        'name': user.name,
        'role': user.role.value if isinstance(user.role, UserRole) else user.role,
        'is_active': user.is_active,
    }


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    """Token to send back in the X-CSRFToken header on mutating requests."""
    return jsonify({'csrf_token': generate_csrf()})


@auth_bp.route("/login", methods=["POST"])
@limiter.limit(auth_rate_limit)
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        return jsonify({'error': 'Invalid login payload', 'code': 'VALIDATION_ERROR', 'fields': form.errors}), 400

    email = form.email.data.strip().lower()
    user = db.session.scalars(select(User).where(func.lower(User.email) == email)).first()

    if user is None or not user.check_password(form.password.data):
        log_login_attempt(user, False, email, reason="invalid_credentials")
        return jsonify({'error': 'Invalid email or password', 'code': 'UNAUTHORIZED'}), 401

    if not user.is_active:
        log_login_attempt(user, False, email, reason="inactive")
        return jsonify({'error': 'Account is inactive. Contact your administrator.', 'code': 'FORBIDDEN'}), 403

    user.last_login_at = datetime.now(timezone.utc)
    db.session.commit()
    log_login_attempt(user, True, email)

    login_user(user, remember=form.remember_me.data)
    session["user_role"] = user.role.value
    return jsonify({'user': serialize_user(user)})


@auth_bp.route("/logout", methods=["POST"])
def logout():
    if current_user.is_authenticated:
        logout_user()
    session.clear()
    return jsonify({'success': True})


@auth_bp.route("/me", methods=["GET"])
@login_required_json
def me():
    return jsonify({'user': serialize_user(current_user)})


__all__ = ['auth_bp', 'LoginForm', 'serialize_user']
