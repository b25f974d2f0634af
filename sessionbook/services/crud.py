"""Generic CRUD service with activity logging and validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Generic, Type, TypeVar

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from sessionbook.extensions import db
from sessionbook.models import (
    Demo,
    Player,
    SchedulePeriod,
    SessionInstance,
    SessionTemplate,
    Sex,
    SportType,
    User,
    UserRole,
)
from sessionbook.services import validation as v
from sessionbook.services.audit import log_admin_action
from sessionbook.services.eligibility import parse_age_range
from sessionbook.services.errors import ConflictError, NotFoundError, ServiceError, ValidationError
from sessionbook.services.generator import default_instance_name

Model = TypeVar("Model", bound=db.Model)


@dataclass
class Page(Generic[Model]):
    """One page of a list query plus the totals the API envelope needs."""

    items: list[Model] = field(default_factory=list)
    total_count: int = 0
    limit: int = 10
    offset: int = 0

    @property
    def has_next_page(self) -> bool:
        return self.offset + self.limit < self.total_count


def clamp_page_args(limit: Any = None, offset: Any = None) -> tuple[int, int]:
    """Normalize ?limit=&offset= using the configured page sizes."""
    default_size = current_app.config.get('DEFAULT_PAGE_SIZE', 10)
    max_size = current_app.config.get('MAX_PAGE_SIZE', 100)
    limit = default_size if limit in (None, '') else v.parse_int(limit, 'limit', minimum=1)
    offset = 0 if offset in (None, '') else v.parse_int(offset, 'offset', minimum=0)
    return min(limit, max_size), offset


def paginate(statement, limit: int, offset: int) -> Page:
    total = db.session.scalar(select(func.count()).select_from(statement.order_by(None).subquery()))
    items = db.session.scalars(statement.limit(limit).offset(offset)).all()
    return Page(items=list(items), total_count=total or 0, limit=limit, offset=offset)


class CRUDService(Generic[Model]):
    """Base CRUD service with common operations."""

    immutable_fields: tuple[str, ...] = ('id', 'created_at', 'updated_at')

    def __init__(self, model: Type[Model]):
        """
        Initialize CRUD service.

        Args:
            model: SQLAlchemy model class
        """
        self.model = model
        self.model_name = model.__tablename__

    @property
    def label(self) -> str:
        return self.model_name.replace('_', ' ').capitalize()

    def create(self, data: dict[str, Any], user: Any = None, skip_log: bool = False) -> tuple[Model | None, ServiceError | None]:
        """
        Create a new record.

        Args:
            data: Dictionary of raw field values (e.g. a JSON payload)
            user: User performing the action (for logging)
            skip_log: Skip activity logging

        Returns:
            (created_object, error)
        """
        try:
            values = self._prepare_create(dict(data or {}))

            instance = self.model(**values)
            db.session.add(instance)
            db.session.flush()  # Get ID before commit

            if not skip_log:
                log_admin_action(
                    user,
                    f"{self.model_name}_created",
                    self.model_name,
                    instance.id,
                    metadata={'data': self._sanitize_log_data(data or {})}
                )

            db.session.commit()
            return instance, None

        except ServiceError as e:
            db.session.rollback()
            return None, e

        except IntegrityError as e:
            db.session.rollback()
            return None, self._handle_integrity_error(e)

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to create {self.model_name}: {e}")
            return None, ServiceError(f"Failed to create {self.label.lower()}", status=500)

    def get_by_id(self, object_id: str) -> Model | None:
        if not object_id:
            return None
        return db.session.get(self.model, object_id)

    def get_or_404(self, object_id: str) -> Model:
        instance = self.get_by_id(object_id)
        if instance is None:
            raise NotFoundError(f"{self.label} not found")
        return instance

    def select(self, filters: dict[str, Any] | None = None, order_by: Any = None):
        statement = select(self.model)
        if filters:
            statement = statement.filter_by(**filters)
        if order_by is not None:
            statement = statement.order_by(order_by)
        return statement

    def list_all(self, filters: dict[str, Any] | None = None, order_by: Any = None) -> list[Model]:
        """
        List all records.

        Args:
            filters: Additional filter criteria
            order_by: SQLAlchemy order_by clause

        Returns:
            List of model instances
        """
        return list(db.session.scalars(self.select(filters, order_by)).all())

    def list_page(self, filters: dict[str, Any] | None = None, order_by: Any = None,
                  limit: int = 10, offset: int = 0) -> Page:
        return paginate(self.select(filters, order_by), limit, offset)

    def update(self, object_id: str, data: dict[str, Any], user: Any = None, skip_log: bool = False) -> tuple[Model | None, ServiceError | None]:
        """
        Update a record.

        Args:
            object_id: ID of object to update
            data: Dictionary of fields to update
            user: User performing the action (for logging)
            skip_log: Skip activity logging

        Returns:
            (updated_object, error)
        """
        try:
            instance = self.get_or_404(object_id)

            values = self._prepare_update(instance, dict(data or {}))

            for key, value in values.items():
                if hasattr(instance, key) and key not in self.immutable_fields:
                    setattr(instance, key, value)

            if not skip_log:
                log_admin_action(
                    user,
                    f"{self.model_name}_updated",
                    self.model_name,
                    object_id,
                    metadata={'data': self._sanitize_log_data(data or {})}
                )

            db.session.commit()
            return instance, None

        except ServiceError as e:
            db.session.rollback()
            return None, e

        except IntegrityError as e:
            db.session.rollback()
            return None, self._handle_integrity_error(e)

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to update {self.model_name}: {e}")
            return None, ServiceError(f"Failed to update {self.label.lower()}", status=500)

    def delete(self, object_id: str, user: Any = None, skip_log: bool = False) -> tuple[bool, ServiceError | None]:
        """
        Delete a record.

        Args:
            object_id: ID of object to delete
            user: User performing the action (for logging)
            skip_log: Skip activity logging

        Returns:
            (success, error)
        """
        try:
            instance = self.get_or_404(object_id)
            self._check_delete(instance)

            if not skip_log:
                log_admin_action(
                    user,
                    f"{self.model_name}_deleted",
                    self.model_name,
                    object_id
                )

            db.session.delete(instance)
            db.session.commit()
            return True, None

        except ServiceError as e:
            db.session.rollback()
            return False, e

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to delete {self.model_name}: {e}")
            return False, ServiceError(f"Failed to delete {self.label.lower()}", status=500)

    def _prepare_create(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Validate and coerce data for creation.
        Override in subclasses for model-specific validation.

        Raises:
            ValidationError / NotFoundError
        """
        return data

    def _prepare_update(self, instance: Model, data: dict[str, Any]) -> dict[str, Any]:
        """
        Validate and coerce data for update.
        Override in subclasses for model-specific validation.
        """
        return data

    def _check_delete(self, instance: Model) -> None:
        """Raise ConflictError when the record may not be deleted."""
        return None

    def _handle_integrity_error(self, error: IntegrityError) -> ServiceError:
        """Convert database integrity errors to user-friendly messages."""
        error_msg = str(error.orig if error.orig is not None else error).lower()
        if 'unique' in error_msg:
            return ValidationError("A record with these values already exists")
        if 'foreign' in error_msg:
            return NotFoundError("Referenced record does not exist")
        return ValidationError("Database constraint violation")

    def _sanitize_log_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Remove sensitive fields from log data."""
        sensitive_fields = {'password', 'password_hash', 'secret', 'token', 'api_key'}
        return {k: v for k, v in data.items() if k not in sensitive_fields}


def _has_booked_instances(*criteria) -> bool:
    statement = select(SessionInstance.id).where(SessionInstance.booked_count > 0, *criteria).limit(1)
    return db.session.scalar(statement) is not None


def resolve_coaches(coach_ids: Any) -> list[User]:
    """Load coach users by id; an empty list means the coach is TBD."""
    if coach_ids in (None, '', 'TBD'):
        return []
    if not isinstance(coach_ids, (list, tuple)):
        raise ValidationError("coach_ids must be a list of user ids")
    ids = [str(c) for c in coach_ids if c]
    if not ids:
        return []
    coaches = db.session.scalars(select(User).where(User.id.in_(ids))).all()
    found = {c.id for c in coaches}
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError(f"Unknown coach id(s): {', '.join(missing)}")
    not_staff = [c.email for c in coaches if not c.has_role(UserRole.COACH, UserRole.ADMIN)]
    if not_staff:
        raise ValidationError(f"User(s) cannot coach sessions: {', '.join(not_staff)}")
    return list(coaches)


class TemplateService(CRUDService[SessionTemplate]):
    """Session templates: the reusable definition of a recurring offering."""

    def __init__(self):
        super().__init__(SessionTemplate)

    @property
    def label(self) -> str:
        return "Session template"

    def get_by_slug(self, slug: str, public_only: bool = True) -> SessionTemplate | None:
        statement = select(SessionTemplate).filter_by(slug=(slug or '').strip().lower())
        if public_only:
            statement = statement.filter_by(is_active=True, staff_only=False)
        return db.session.scalars(statement).first()

    def _age_range(self, data: dict[str, Any]) -> tuple[int | None, int | None] | None:
        """Return (min_age, max_age) from the payload, or None when not supplied."""
        if 'age_range' in data:
            age_range = data['age_range']
            if age_range in (None, ''):
                return None, None
            if isinstance(age_range, str):
                return parse_age_range(age_range)
            if isinstance(age_range, dict):
                min_age, max_age = age_range.get('min_age'), age_range.get('max_age')
            else:
                raise ValidationError("age_range must be a string like 10-12 or an object with min_age/max_age")
        elif 'min_age' in data or 'max_age' in data:
            min_age, max_age = data.get('min_age'), data.get('max_age')
        else:
            return None

        if (min_age is None) != (max_age is None):
            raise ValidationError("Age range needs both min_age and max_age")
        if min_age is None:
            return None, None
        min_age = v.parse_int(min_age, 'min_age', minimum=0, maximum=100)
        max_age = v.parse_int(max_age, 'max_age', minimum=0, maximum=100)
        if min_age > max_age:
            raise ValidationError("Minimum age cannot exceed maximum age")
        return min_age, max_age

    def _coerce(self, data: dict[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if 'name' in data:
            values['name'] = v.parse_text(data['name'], 'Session template name', 100, required=True)
        if 'slug' in data and data['slug']:
            values['slug'] = v.validate_slug(data['slug'])
        if 'sport' in data:
            values['sport'] = v.parse_enum(SportType, data['sport'], 'sport')
        if 'demo' in data:
            values['demo'] = v.parse_enum(Demo, data['demo'], 'demo')
        if 'description' in data:
            values['description'] = v.parse_text(data['description'], 'Description', 5000) or ''
        if 'birth_year' in data:
            values['birth_year'] = (
                None if data['birth_year'] in (None, '')
                else v.parse_int(data['birth_year'], 'birth_year', minimum=1900, maximum=2100)
            )
        age_range = self._age_range(data)
        if age_range is not None:
            values['min_age'], values['max_age'] = age_range
        elif values.get('birth_year') is not None:
            # A cohort year replaces any stored age range.
            values['min_age'] = values['max_age'] = None
        if 'roster_limit' in data:
            values['roster_limit'] = v.parse_int(data['roster_limit'], 'Roster limit', minimum=1, maximum=100)
        if 'price' in data:
            price = v.parse_number(data['price'], 'Price', minimum=0, maximum=10000)
            values['price'] = Decimal(str(price)).quantize(Decimal('0.01'))
        if 'trainer' in data:
            values['trainer'] = v.parse_text(data['trainer'], 'Trainer name', 100)
        if 'staff_only' in data:
            values['staff_only'] = v.parse_bool(data['staff_only'], 'staff_only')
        if 'is_active' in data:
            values['is_active'] = v.parse_bool(data['is_active'], 'is_active')
        return values

    def _ensure_slug_free(self, slug: str, exclude_id: str | None = None) -> None:
        statement = select(SessionTemplate.id).filter_by(slug=slug)
        if exclude_id:
            statement = statement.where(SessionTemplate.id != exclude_id)
        if db.session.scalar(statement) is not None:
            raise ValidationError(f"A session template with slug '{slug}' already exists")

    def _prepare_create(self, data: dict[str, Any]) -> dict[str, Any]:
        v.require(data, 'name', 'sport', 'demo')
        values = self._coerce(data)
        if not values.get('slug'):
            values['slug'] = v.validate_slug(v.slugify(values['name']))
        self._ensure_slug_free(values['slug'])
        values.setdefault('description', '')
        values.setdefault('roster_limit', 20)
        values.setdefault('price', Decimal('0.00'))
        return values

    def _prepare_update(self, instance: SessionTemplate, data: dict[str, Any]) -> dict[str, Any]:
        values = self._coerce(data)
        if 'slug' in values:
            self._ensure_slug_free(values['slug'], exclude_id=instance.id)
        return values

    def _check_delete(self, instance: SessionTemplate) -> None:
        if _has_booked_instances(SessionInstance.template_id == instance.id):
            raise ConflictError("Cannot delete a session template whose sessions have bookings")


class PeriodService(CRUDService[SchedulePeriod]):
    """Schedule periods bind a template to a date range, coaches and capacity."""

    immutable_fields = CRUDService.immutable_fields + ('template_id',)

    def __init__(self):
        super().__init__(SchedulePeriod)

    @property
    def label(self) -> str:
        return "Schedule period"

    def _coerce(self, data: dict[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if 'name' in data:
            values['name'] = v.parse_text(data['name'], 'Period name', 100, required=True)
        if 'start_date' in data:
            values['start_date'] = v.parse_date(data['start_date'], 'start_date')
        if 'end_date' in data:
            values['end_date'] = v.parse_date(data['end_date'], 'end_date')
        if 'capacity' in data and data['capacity'] is not None:
            values['capacity'] = v.parse_int(data['capacity'], 'Capacity', minimum=1)
        if 'coach_ids' in data:
            values['coaches'] = resolve_coaches(data['coach_ids'])
        if 'is_active' in data:
            values['is_active'] = v.parse_bool(data['is_active'], 'is_active')
        return values

    @staticmethod
    def _validate_range(start_date, end_date) -> None:
        if end_date <= start_date:
            raise ValidationError("End date must be after start date")

    def _prepare_create(self, data: dict[str, Any]) -> dict[str, Any]:
        v.require(data, 'template_id', 'name', 'start_date', 'end_date')
        template = TemplateService().get_or_404(data['template_id'])
        values = self._coerce(data)
        self._validate_range(values['start_date'], values['end_date'])
        values['template'] = template
        values.setdefault('capacity', template.roster_limit)
        return values

    def _prepare_update(self, instance: SchedulePeriod, data: dict[str, Any]) -> dict[str, Any]:
        if 'template_id' in data and data['template_id'] != instance.template_id:
            raise ValidationError("A period's template cannot be changed after creation")
        values = self._coerce(data)
        self._validate_range(values.get('start_date', instance.start_date),
                             values.get('end_date', instance.end_date))
        return values

    def _check_delete(self, instance: SchedulePeriod) -> None:
        if _has_booked_instances(SessionInstance.period_id == instance.id):
            raise ConflictError("Cannot delete a schedule period whose sessions have bookings")


class InstanceService(CRUDService[SessionInstance]):
    """Individually managed session instances (bulk creation lives in the generator)."""

    immutable_fields = CRUDService.immutable_fields + ('period_id', 'template_id', 'booked_count')

    def __init__(self):
        super().__init__(SessionInstance)

    @property
    def label(self) -> str:
        return "Session instance"

    def _coerce(self, data: dict[str, Any]) -> dict[str, Any]:
        if 'booked_count' in data:
            raise ValidationError("booked_count is managed by reservations and cannot be set directly")
        values: dict[str, Any] = {}
        if 'name' in data and data['name'] not in (None, ''):
            values['name'] = v.parse_text(data['name'], 'Session name', 100, required=True)
        if 'date' in data:
            values['date'] = v.parse_date(data['date'], 'date')
        if 'start_time' in data:
            values['start_time'] = v.parse_time(data['start_time'], 'start time')
        if 'end_time' in data:
            values['end_time'] = v.parse_time(data['end_time'], 'end time')
        if 'capacity' in data and data['capacity'] is not None:
            values['capacity'] = v.parse_int(data['capacity'], 'Capacity', minimum=1)
        if 'coach_ids' in data:
            values['coaches'] = resolve_coaches(data['coach_ids'])
        if 'is_active' in data:
            values['is_active'] = v.parse_bool(data['is_active'], 'is_active')
        if 'is_cancelled' in data:
            values['is_cancelled'] = v.parse_bool(data['is_cancelled'], 'is_cancelled')
        if 'notes' in data:
            values['notes'] = v.parse_text(data['notes'], 'Notes', 500)
        return values

    def _prepare_create(self, data: dict[str, Any]) -> dict[str, Any]:
        v.require(data, 'period_id', 'date', 'start_time', 'end_time')
        period = PeriodService().get_or_404(data['period_id'])
        values = self._coerce(data)
        v.validate_time_window(values['start_time'], values['end_time'])
        values['period'] = period
        values['template_id'] = period.template_id
        values.setdefault('name', default_instance_name(period, values['date']))
        values.setdefault('capacity', period.capacity)
        values.setdefault('coaches', list(period.coaches))
        values['booked_count'] = 0
        return values

    def _prepare_update(self, instance: SessionInstance, data: dict[str, Any]) -> dict[str, Any]:
        for key in ('period_id', 'template_id'):
            if key in data and data[key] != getattr(instance, key):
                raise ValidationError(f"{key} cannot be changed after creation")
        values = self._coerce(data)
        v.validate_time_window(values.get('start_time', instance.start_time),
                               values.get('end_time', instance.end_time))
        if values.get('capacity', instance.capacity) < instance.booked_count:
            raise ValidationError(
                f"Capacity cannot be lower than the {instance.booked_count} spot(s) already booked"
            )
        return values

    def _check_delete(self, instance: SessionInstance) -> None:
        if instance.booked_count > 0:
            raise ConflictError("Cannot delete a session instance that has bookings")


class PlayerService(CRUDService[Player]):
    """Players are the children a guardian books into sessions."""

    immutable_fields = CRUDService.immutable_fields + ('guardian_id',)

    def __init__(self):
        super().__init__(Player)

    def _coerce(self, data: dict[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if 'name' in data:
            values['name'] = v.parse_text(data['name'], 'Player name', 255, required=True)
        if 'birth_date' in data:
            values['birth_date'] = v.parse_date(data['birth_date'], 'birth_date')
        if 'sex' in data:
            values['sex'] = v.parse_enum(Sex, data['sex'], 'sex')
        return values

    def _prepare_create(self, data: dict[str, Any]) -> dict[str, Any]:
        v.require(data, 'guardian_id', 'name', 'birth_date', 'sex')
        guardian = db.session.get(User, data['guardian_id'])
        if guardian is None:
            raise NotFoundError("Guardian not found")
        values = self._coerce(data)
        values['guardian'] = guardian
        return values

    def _prepare_update(self, instance: Player, data: dict[str, Any]) -> dict[str, Any]:
        return self._coerce(data)


__all__ = [
    'Page',
    'clamp_page_args',
    'paginate',
    'CRUDService',
    'resolve_coaches',
    'TemplateService',
    'PeriodService',
    'InstanceService',
    'PlayerService',
]
