from __future__ import annotations

import uuid
from datetime import datetime, date
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from sessionbook.extensions import db, bcrypt
from sessionbook.services import capacity

JSONType = JSON().with_variant(JSONB, 'postgresql')

# Alias for annotating columns that are themselves named "date"
DateType = date


class TimestampedBase(db.Model):
    """Abstract base providing id/created/updated columns."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UserRole(Enum):
    ADMIN = "admin"
    COACH = "coach"
    GUARDIAN = "guardian"


class SportType(Enum):
    SOCCER = "soccer"
    VOLLEYBALL = "volleyball"
    BASKETBALL = "basketball"
    TENNIS = "tennis"
    BASEBALL = "baseball"
    FOOTBALL = "football"


class Demo(Enum):
    BOYS = "boys"
    GIRLS = "girls"
    COED = "coed"


class Sex(Enum):
    MALE = "male"
    FEMALE = "female"


period_coach = Table(
    "period_coach",
    db.metadata,
    Column("period_id", String(36), ForeignKey("schedule_period.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(36), ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
)

instance_coach = Table(
    "instance_coach",
    db.metadata,
    Column("instance_id", String(36), ForeignKey("session_instance.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(36), ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
)


class User(TimestampedBase):
    __tablename__ = "user"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SqlEnum(UserRole, name="user_role", native_enum=False),
        nullable=False,
        default=UserRole.GUARDIAN,
    )
    active: Mapped[bool] = mapped_column('is_active', Boolean, nullable=False, default=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    players: Mapped[list["Player"]] = relationship(back_populates="guardian", cascade="all, delete-orphan")
    audit_logs: Mapped[list["AuditLog"]] = relationship(back_populates="user")

    def set_password(self, password: str) -> None:
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        except ValueError:
            return False

    def has_role(self, *roles: UserRole | str) -> bool:
        role_value = self.role.value if isinstance(self.role, UserRole) else str(self.role)
        allowed = {r.value if isinstance(r, UserRole) else str(r) for r in roles}
        return role_value in allowed

    @property
    def is_admin(self) -> bool:
        return self.has_role(UserRole.ADMIN)

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_active(self) -> bool:  # Flask-Login compatibility
        return bool(self.active)

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        return str(self.id)


class Player(TimestampedBase):
    __tablename__ = "player"

    guardian_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    birth_date: Mapped[date] = mapped_column(Date, nullable=False)
    sex: Mapped[Sex] = mapped_column(SqlEnum(Sex, name="player_sex", native_enum=False), nullable=False)

    guardian: Mapped[User] = relationship(back_populates="players")


class SessionTemplate(TimestampedBase):
    __tablename__ = "session_template"
    __table_args__ = (
        CheckConstraint("roster_limit >= 1 AND roster_limit <= 100", name="ck_template_roster_limit"),
        CheckConstraint("price >= 0", name="ck_template_price"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True, index=True)
    sport: Mapped[SportType] = mapped_column(
        SqlEnum(SportType, name="sport_type", native_enum=False),
        nullable=False,
        index=True,
    )
    demo: Mapped[Demo] = mapped_column(SqlEnum(Demo, name="session_demo", native_enum=False), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Age targeting: the age range wins when both are set
    birth_year: Mapped[int | None] = mapped_column(Integer)
    min_age: Mapped[int | None] = mapped_column(Integer)
    max_age: Mapped[int | None] = mapped_column(Integer)

    roster_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    price: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    trainer: Mapped[str | None] = mapped_column(String(100))
    staff_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    periods: Mapped[list["SchedulePeriod"]] = relationship(back_populates="template", cascade="all, delete-orphan")
    instances: Mapped[list["SessionInstance"]] = relationship(viewonly=True)

    @property
    def has_age_range(self) -> bool:
        return self.min_age is not None and self.max_age is not None

    @property
    def is_publicly_visible(self) -> bool:
        return bool(self.is_active and not self.staff_only)


class SchedulePeriod(TimestampedBase):
    __tablename__ = "schedule_period"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_period_capacity"),
        Index("ix_schedule_period_dates", "start_date", "end_date"),
    )

    template_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("session_template.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    template: Mapped[SessionTemplate] = relationship(back_populates="periods")
    coaches: Mapped[list[User]] = relationship(secondary=period_coach)
    instances: Mapped[list["SessionInstance"]] = relationship(
        back_populates="period",
        cascade="all, delete-orphan",
        order_by="SessionInstance.date",
    )

    def is_currently_active(self, today: date) -> bool:
        return bool(self.is_active and self.start_date <= today <= self.end_date)

    def is_upcoming(self, today: date) -> bool:
        return self.start_date > today

    def is_past(self, today: date) -> bool:
        return self.end_date < today


class SessionInstance(TimestampedBase):
    __tablename__ = "session_instance"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_instance_capacity"),
        CheckConstraint("booked_count >= 0 AND booked_count <= capacity", name="ck_instance_booked_count"),
        Index("ix_session_instance_period_date", "period_id", "date"),
    )

    period_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("schedule_period.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Copy of period.template_id; a period's template never changes
    template_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("session_template.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[DateType] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    booked_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    is_cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    notes: Mapped[str | None] = mapped_column(String(500))

    period: Mapped[SchedulePeriod] = relationship(back_populates="instances")
    template: Mapped[SessionTemplate] = relationship()
    coaches: Mapped[list[User]] = relationship(secondary=instance_coach)

    @property
    def available_spots(self) -> int:
        return capacity.available_spots(self.capacity, self.booked_count)

    @property
    def is_full(self) -> bool:
        return capacity.is_full(self.capacity, self.booked_count)

    @property
    def booking_percentage(self) -> int:
        return capacity.booking_percentage(self.capacity, self.booked_count)

    def is_available(self, today: date) -> bool:
        return capacity.is_available(self, today)


class AuditLog(TimestampedBase):
    __tablename__ = "audit_log"

    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
        index=True,
    )
    action: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(36))
    meta: Mapped[dict | None] = mapped_column(JSONType, default=dict)

    user: Mapped[User | None] = relationship(back_populates="audit_logs")
