"""JSON API for session templates, schedule periods, instances and reservations."""

from __future__ import annotations

from datetime import date

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user
from sqlalchemy import select

from sessionbook.auth import admin_required, is_admin, login_required_json, role_required
from sessionbook.extensions import db, limiter
from sessionbook.models import Player, SchedulePeriod, SessionInstance, SessionTemplate, User, UserRole
from sessionbook.security import reservation_rate_limit
from sessionbook.services import booking
from sessionbook.services.capacity import instance_flags, period_flags
from sessionbook.services.clock import facility_today
from sessionbook.services.crud import (
    InstanceService,
    Page,
    PeriodService,
    PlayerService,
    TemplateService,
    clamp_page_args,
    paginate,
)
from sessionbook.services.eligibility import is_player_eligible
from sessionbook.services.errors import NotFoundError, PlayerIneligibleError, ServiceError, ValidationError
from sessionbook.services.generator import generate_instances
from sessionbook.services.validation import parse_bool

api_bp = Blueprint('api', __name__)


def error_response(error: ServiceError):
    return jsonify(error.to_dict()), error.status


def _payload() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _include_inactive() -> bool:
    """Admins may ask for inactive/hidden records with ?include_inactive=1."""
    flag = request.args.get('include_inactive')
    return bool(flag) and parse_bool(flag, 'include_inactive') and is_admin()


def _page_args() -> tuple[int, int]:
    return clamp_page_args(request.args.get('limit'), request.args.get('offset'))


def _enum_value(value):
    return value.value if hasattr(value, 'value') else value


def envelope(page: Page, serializer) -> dict:
    return {
        'items': [serializer(item) for item in page.items],
        'total_count': page.total_count,
        'has_next_page': page.has_next_page,
        'limit': page.limit,
        'offset': page.offset,
    }


# ============================================================================
# SERIALIZERS
# ============================================================================

def serialize_coach(user: User) -> dict:
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
    }


def serialize_template(template: SessionTemplate) -> dict:
    return {
        'id': template.id,
        'slug': template.slug,
        'name': template.name,
        'sport': _enum_value(template.sport),
        'demo': _enum_value(template.demo),
        'description': template.description,
        'birth_year': template.birth_year,
        'age_range': (
            {'min_age': template.min_age, 'max_age': template.max_age}
            if template.has_age_range else None
        ),
        'roster_limit': template.roster_limit,
        'price': float(template.price) if template.price is not None else None,
        'trainer': template.trainer,
        'staff_only': template.staff_only,
        'is_active': template.is_active,
        'is_publicly_visible': template.is_publicly_visible,
        'created_at': template.created_at.isoformat() if template.created_at else None,
    }


def serialize_period(period: SchedulePeriod, today: date | None = None) -> dict:
    today = today or facility_today()
    instances = period.instances
    data = {
        'id': period.id,
        'template_id': period.template_id,
        'template': {
            'id': period.template.id,
            'name': period.template.name,
            'slug': period.template.slug,
        } if period.template else None,
        'name': period.name,
        'start_date': period.start_date.isoformat(),
        'end_date': period.end_date.isoformat(),
        'coaches': [serialize_coach(c) for c in period.coaches],
        'coach_label': ', '.join(c.name or c.email for c in period.coaches) or 'TBD',
        'capacity': period.capacity,
        'is_active': period.is_active,
        'instances_count': len(instances),
        'active_instances_count': sum(1 for i in instances if i.is_active and not i.is_cancelled),
    }
    data.update(period_flags(period, today))
    return data


def serialize_instance(instance: SessionInstance, today: date | None = None) -> dict:
    today = today or facility_today()
    data = {
        'id': instance.id,
        'period_id': instance.period_id,
        'template_id': instance.template_id,
        'template': {
            'id': instance.template.id,
            'name': instance.template.name,
            'sport': _enum_value(instance.template.sport),
            'demo': _enum_value(instance.template.demo),
        } if instance.template else None,
        'period': {
            'id': instance.period.id,
            'name': instance.period.name,
        } if instance.period else None,
        'name': instance.name,
        'date': instance.date.isoformat(),
        'start_time': instance.start_time,
        'end_time': instance.end_time,
        'coaches': [serialize_coach(c) for c in instance.coaches],
        'capacity': instance.capacity,
        'booked_count': instance.booked_count,
        'is_active': instance.is_active,
        'is_cancelled': instance.is_cancelled,
        'notes': instance.notes,
    }
    data.update(instance_flags(instance, today))
    return data


def serialize_player(player: Player) -> dict:
    return {
        'id': player.id,
        'guardian_id': player.guardian_id,
        'name': player.name,
        'birth_date': player.birth_date.isoformat(),
        'sex': _enum_value(player.sex),
    }


# ============================================================================
# SESSION TEMPLATES
# ============================================================================

@api_bp.route('/templates', methods=['GET'])
def list_templates():
    """List templates; guardians only see publicly visible ones."""
    limit, offset = _page_args()
    statement = select(SessionTemplate).order_by(SessionTemplate.name)
    if not _include_inactive():
        statement = statement.filter_by(is_active=True, staff_only=False)
    return jsonify(envelope(paginate(statement, limit, offset), serialize_template))


@api_bp.route('/templates/<template_id>', methods=['GET'])
def get_template(template_id: str):
    template = TemplateService().get_by_id(template_id)
    if not template or (not template.is_publicly_visible and not is_admin()):
        return jsonify({'error': 'Session template not found', 'code': 'NOT_FOUND'}), 404
    return jsonify({'template': serialize_template(template)})


@api_bp.route('/templates/slug/<slug>', methods=['GET'])
def get_template_by_slug(slug: str):
    template = TemplateService().get_by_slug(slug, public_only=not is_admin())
    if not template:
        return jsonify({'error': 'Session template not found', 'code': 'NOT_FOUND'}), 404
    return jsonify({'template': serialize_template(template)})


@api_bp.route('/templates', methods=['POST'])
@admin_required
def create_template():
    template, error = TemplateService().create(_payload(), user=current_user)
    if error:
        return error_response(error)
    return jsonify({'template': serialize_template(template)}), 201


@api_bp.route('/templates/<template_id>', methods=['PUT'])
@admin_required
def update_template(template_id: str):
    template, error = TemplateService().update(template_id, _payload(), user=current_user)
    if error:
        return error_response(error)
    return jsonify({'template': serialize_template(template)})


@api_bp.route('/templates/<template_id>', methods=['DELETE'])
@admin_required
def delete_template(template_id: str):
    success, error = TemplateService().delete(template_id, user=current_user)
    if error:
        return error_response(error)
    return jsonify({'success': success})


# ============================================================================
# SCHEDULE PERIODS
# ============================================================================

@api_bp.route('/periods', methods=['GET'])
def list_periods():
    """List periods, optionally for one template."""
    limit, offset = _page_args()
    statement = select(SchedulePeriod).order_by(SchedulePeriod.start_date, SchedulePeriod.name)
    template_id = request.args.get('template_id')
    if template_id:
        statement = statement.filter_by(template_id=template_id)
    if not _include_inactive():
        statement = statement.filter_by(is_active=True)
    today = facility_today()
    return jsonify(envelope(paginate(statement, limit, offset), lambda p: serialize_period(p, today)))


@api_bp.route('/periods/<period_id>', methods=['GET'])
def get_period(period_id: str):
    period = PeriodService().get_by_id(period_id)
    if not period or (not period.is_active and not is_admin()):
        return jsonify({'error': 'Schedule period not found', 'code': 'NOT_FOUND'}), 404
    return jsonify({'period': serialize_period(period)})


@api_bp.route('/periods', methods=['POST'])
@admin_required
def create_period():
    period, error = PeriodService().create(_payload(), user=current_user)
    if error:
        return error_response(error)
    return jsonify({'period': serialize_period(period)}), 201


@api_bp.route('/periods/<period_id>', methods=['PUT'])
@admin_required
def update_period(period_id: str):
    period, error = PeriodService().update(period_id, _payload(), user=current_user)
    if error:
        return error_response(error)
    return jsonify({'period': serialize_period(period)})


@api_bp.route('/periods/<period_id>', methods=['DELETE'])
@admin_required
def delete_period(period_id: str):
    success, error = PeriodService().delete(period_id, user=current_user)
    if error:
        return error_response(error)
    return jsonify({'success': success})


@api_bp.route('/periods/<period_id>/generate', methods=['POST'])
@admin_required
def generate_period_instances(period_id: str):
    """Bulk-create instances for every matching weekday in a date window."""
    data = _payload()
    result = generate_instances(
        period_id,
        data.get('start_date'),
        data.get('end_date'),
        data.get('days_of_week'),
        data.get('start_time'),
        data.get('end_time'),
        user=current_user,
    )

    today = facility_today()
    body = {
        'status': result.status,
        'created': [serialize_instance(i, today) for i in result.created],
        'existing': [serialize_instance(i, today) for i in result.existing],
        'errors': result.errors,
    }
    if result.status == 'failed':
        return jsonify(body), 422
    if result.status == 'partial':
        return jsonify(body), 207
    return jsonify(body), 201


# ============================================================================
# SESSION INSTANCES
# ============================================================================

def _visible_instances(statement):
    """Restrict an instance query to what the caller may see; staff-only templates are admin-only.

    Apply after any filter_by() calls, which would otherwise bind to the joined template.
    """
    if is_admin():
        return statement
    return statement.join(SessionInstance.template).where(SessionTemplate.staff_only.is_(False))


def _hidden_from_caller(instance: SessionInstance) -> bool:
    """Same rule as _visible_instances, for one loaded instance."""
    return bool(instance.template and instance.template.staff_only and not is_admin())


@api_bp.route('/instances', methods=['GET'])
def list_instances():
    """List instances, optionally by period or template, soonest first."""
    limit, offset = _page_args()
    today = facility_today()
    statement = select(SessionInstance).order_by(SessionInstance.date, SessionInstance.start_time)

    for key in ('period_id', 'template_id'):
        if request.args.get(key):
            statement = statement.filter_by(**{key: request.args[key]})
    if not _include_inactive():
        statement = statement.filter_by(is_active=True)
    if request.args.get('available_only') and parse_bool(request.args['available_only'], 'available_only'):
        statement = statement.where(
            SessionInstance.is_cancelled.is_(False),
            SessionInstance.date >= today,
            SessionInstance.booked_count < SessionInstance.capacity,
        )
    statement = _visible_instances(statement)

    return jsonify(envelope(paginate(statement, limit, offset), lambda i: serialize_instance(i, today)))


@api_bp.route('/instances/<instance_id>', methods=['GET'])
def get_instance(instance_id: str):
    instance = InstanceService().get_by_id(instance_id)
    if not instance or _hidden_from_caller(instance) or (not instance.is_active and not is_admin()):
        return jsonify({'error': 'Session instance not found', 'code': 'NOT_FOUND'}), 404
    return jsonify({'instance': serialize_instance(instance)})


@api_bp.route('/instances', methods=['POST'])
@admin_required
def create_instance():
    instance, error = InstanceService().create(_payload(), user=current_user)
    if error:
        return error_response(error)
    return jsonify({'instance': serialize_instance(instance)}), 201


@api_bp.route('/instances/<instance_id>', methods=['PUT'])
@admin_required
def update_instance(instance_id: str):
    instance, error = InstanceService().update(instance_id, _payload(), user=current_user)
    if error:
        return error_response(error)
    return jsonify({'instance': serialize_instance(instance)})


@api_bp.route('/instances/<instance_id>', methods=['DELETE'])
@admin_required
def delete_instance(instance_id: str):
    success, error = InstanceService().delete(instance_id, user=current_user)
    if error:
        return error_response(error)
    return jsonify({'success': success})


# ============================================================================
# RESERVATIONS
# ============================================================================

def _player_for_current_user(player_id: str) -> Player:
    player = PlayerService().get_by_id(player_id)
    # Another guardian's player is reported as missing
    if player is None or (player.guardian_id != current_user.id and not is_admin()):
        raise NotFoundError("Player not found")
    return player


@api_bp.route('/instances/<instance_id>/reserve', methods=['POST'])
@login_required_json
@limiter.limit(reservation_rate_limit)
def reserve_instance(instance_id: str):
    """Claim one spot ahead of payment; optionally check a player's eligibility first."""
    data = _payload()
    today = facility_today()

    instance = InstanceService().get_by_id(instance_id)
    if instance is not None and _hidden_from_caller(instance):
        return error_response(NotFoundError("Session not found"))

    player_id = data.get('player_id')
    if player_id:
        player = _player_for_current_user(player_id)
        if instance is not None and instance.template is not None:
            if not is_player_eligible(player, instance.template, today):
                current_app.logger.info(f"Player {player.id} is not eligible for session instance {instance_id}")
                return error_response(PlayerIneligibleError("This player is not eligible for this session"))

    result = booking.reserve(instance_id, today=today)
    if not result.success:
        return error_response(result.error)
    return jsonify({'instance': serialize_instance(result.instance, today)})


@api_bp.route('/instances/<instance_id>/release', methods=['POST'])
@admin_required
def release_instance(instance_id: str):
    """Return one spot (payment failure, cancellation or refund)."""
    result = booking.release(instance_id)
    if not result.success:
        return error_response(result.error)
    return jsonify({'instance': serialize_instance(result.instance)})


# ============================================================================
# PLAYERS
# ============================================================================

@api_bp.route('/players', methods=['GET'])
@login_required_json
def list_players():
    """List the current guardian's players (admins may pass ?guardian_id=)."""
    guardian_id = current_user.id
    if is_admin() and request.args.get('guardian_id'):
        guardian_id = request.args['guardian_id']
    players = PlayerService().list_all(filters={'guardian_id': guardian_id}, order_by=Player.name)
    return jsonify({'items': [serialize_player(p) for p in players]})


@api_bp.route('/players', methods=['POST'])
@role_required(UserRole.GUARDIAN, UserRole.ADMIN)
def create_player():
    data = _payload()
    if not is_admin() or not data.get('guardian_id'):
        data['guardian_id'] = current_user.id
    player, error = PlayerService().create(data, user=current_user)
    if error:
        return error_response(error)
    return jsonify({'player': serialize_player(player)}), 201


@api_bp.route('/players/<player_id>/eligible-instances', methods=['GET'])
@login_required_json
def eligible_instances(player_id: str):
    """Bookable instances this player may join, soonest first."""
    player = _player_for_current_user(player_id)
    limit, offset = _page_args()
    today = facility_today()

    statement = (
        select(SessionInstance)
        .where(
            SessionInstance.is_active.is_(True),
            SessionInstance.is_cancelled.is_(False),
            SessionInstance.date >= today,
            SessionInstance.booked_count < SessionInstance.capacity,
        )
        .order_by(SessionInstance.date, SessionInstance.start_time)
    )
    statement = _visible_instances(statement)

    eligible = [
        instance for instance in db.session.scalars(statement)
        if is_player_eligible(player, instance.template, today)
    ]
    page = Page(items=eligible[offset:offset + limit], total_count=len(eligible), limit=limit, offset=offset)
    return jsonify(envelope(page, lambda i: serialize_instance(i, today)))


__all__ = ['api_bp']
