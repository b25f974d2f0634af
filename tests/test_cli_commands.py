from sqlalchemy import func, select

from sessionbook.extensions import db
from sessionbook.models import SchedulePeriod, SessionInstance, SessionTemplate, User, UserRole


def test_user_create_and_set_password(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['user', 'create', '--email', 'Coach@Clubhouse.org', '--password', 'first-pass',
                                 '--role', 'coach', '--name', 'Jordan'])
    assert result.exit_code == 0
    assert 'User created successfully' in result.output

    result = runner.invoke(args=['user', 'create', '--email', 'coach@clubhouse.org', '--password', 'x'])
    assert 'already exists' in result.output

    result = runner.invoke(args=['user', 'set-password', '--email', 'coach@clubhouse.org', '--password', 'second-pass'])
    assert 'Password updated' in result.output

    with app.app_context():
        user = db.session.scalars(select(User).filter_by(email='coach@clubhouse.org')).one()
        assert user.role is UserRole.COACH
        assert user.check_password('second-pass')


def test_schedule_generate(app, period_id):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        'schedule', 'generate', '--period', period_id, '--start', '2024-06-01', '--end', '2024-06-30',
        '--days', '1,3', '--start-time', '17:00', '--end-time', '18:30',
    ])
    assert result.exit_code == 0
    assert 'Created: 8' in result.output

    with app.app_context():
        count = db.session.scalar(select(func.count(SessionInstance.id)).filter_by(period_id=period_id))
        assert count == 8


def test_schedule_generate_rejects_bad_days(app, period_id):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        'schedule', 'generate', '--period', period_id, '--start', '2024-06-01', '--end', '2024-06-30',
        '--days', '9', '--start-time', '17:00', '--end-time', '18:30',
    ])
    assert result.exit_code == 1
    assert 'Invalid days of week' in result.output


def test_schedule_list_periods(app, period_id):
    result = app.test_cli_runner().invoke(args=['schedule', 'list-periods', '--template', 'soccer-skills-u10'])
    assert result.exit_code == 0
    assert 'June 2024' in result.output
    assert 'Casey Coach' in result.output


def test_seed_demo(app):
    result = app.test_cli_runner().invoke(args=['seed', 'demo', '--weeks', '2'])
    assert result.exit_code == 0, result.output
    assert 'Demo data seeded successfully' in result.output

    with app.app_context():
        assert db.session.scalars(select(SessionTemplate).filter_by(slug='demo-soccer-skills')).one()
        assert db.session.scalar(select(func.count(SchedulePeriod.id))) == 1
        admin = db.session.scalars(select(User).filter_by(email='admin@example.com')).one()
        assert admin.check_password('changeme123')
