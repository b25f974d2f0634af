"""Data seeding CLI commands."""

from datetime import timedelta

import click
from flask.cli import with_appcontext
from sqlalchemy import select

from sessionbook.extensions import db
from sessionbook.models import Demo, Player, Sex, SportType, User, UserRole
from sessionbook.services.clock import facility_today
from sessionbook.services.crud import PeriodService, TemplateService
from sessionbook.services.generator import generate_instances


def _get_or_create_user(email, name, role, password):
    user = db.session.scalars(select(User).filter_by(email=email)).first()
    if user:
        return user, False
    user = User(email=email, name=name, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    return user, True


@click.group('seed')
def seed_commands():
    """Data seeding commands."""
    pass


@seed_commands.command('demo')
@click.option('--password', default='changeme123', show_default=True, help='Password for the demo accounts')
@click.option('--weeks', default=4, show_default=True, help='Weeks of sessions to generate')
@with_appcontext
def seed_demo(password, weeks):
    """Seed demo accounts, a session template and a generated schedule.

    Creates:
    - An admin, a coach and a guardian with one player
    - A coed soccer template for ages 8-10
    - A period starting today with Monday/Wednesday sessions

    Example:
        flask seed demo
        flask seed demo --weeks 8
    """
    admin, _ = _get_or_create_user('admin@example.com', 'Demo Admin', UserRole.ADMIN, password)
    coach, _ = _get_or_create_user('coach@example.com', 'Demo Coach', UserRole.COACH, password)
    guardian, created = _get_or_create_user('guardian@example.com', 'Demo Guardian', UserRole.GUARDIAN, password)

    today = facility_today()
    if created:
        db.session.add(Player(
            guardian=guardian,
            name='Demo Player',
            birth_date=today.replace(year=today.year - 9, day=1),
            sex=Sex.FEMALE,
        ))
    db.session.commit()
    click.echo('Demo accounts ready (admin@, coach@, guardian@example.com).')

    templates = TemplateService()
    template = templates.get_by_slug('demo-soccer-skills', public_only=False)
    if template is None:
        template, error = templates.create({
            'name': 'Demo Soccer Skills',
            'slug': 'demo-soccer-skills',
            'sport': SportType.SOCCER.value,
            'demo': Demo.COED.value,
            'age_range': '8-10',
            'roster_limit': 12,
            'price': 25,
            'description': 'Weekly skills clinic',
        }, user=admin)
        if error:
            click.echo(click.style(f'Error: {error.message}', fg='red'))
            return
        click.echo(f'Created template: {template.name}')

    end_date = today + timedelta(weeks=weeks)
    period, error = PeriodService().create({
        'template_id': template.id,
        'name': f'Demo Block {today.isoformat()}',
        'start_date': today,
        'end_date': end_date,
        'coach_ids': [coach.id],
    }, user=admin)
    if error:
        click.echo(click.style(f'Error: {error.message}', fg='red'))
        return

    result = generate_instances(period.id, today, end_date, [1, 3], '17:00', '18:30', user=admin)
    click.echo(click.style('Demo data seeded successfully!', fg='green'))
    click.echo(f'  Period: {period.name}')
    click.echo(f'  Sessions created: {len(result.created)}')
