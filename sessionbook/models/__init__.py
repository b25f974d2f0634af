from .models import (
    AuditLog,
    Demo,
    Player,
    SchedulePeriod,
    SessionInstance,
    SessionTemplate,
    Sex,
    SportType,
    TimestampedBase,
    User,
    UserRole,
    instance_coach,
    period_coach,
)

__all__ = [
    'AuditLog',
    'Demo',
    'Player',
    'SchedulePeriod',
    'SessionInstance',
    'SessionTemplate',
    'Sex',
    'SportType',
    'TimestampedBase',
    'User',
    'UserRole',
    'instance_coach',
    'period_coach',
]
