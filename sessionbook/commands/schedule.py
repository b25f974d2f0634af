"""Schedule management CLI commands."""

import click
from flask.cli import with_appcontext
from sqlalchemy import select

from sessionbook.extensions import db
from sessionbook.models import SchedulePeriod, SessionTemplate
from sessionbook.services.capacity import period_flags
from sessionbook.services.clock import facility_today
from sessionbook.services.errors import ServiceError
from sessionbook.services.generator import generate_instances


@click.group('schedule')
def schedule_commands():
    """Schedule management commands."""
    pass


@schedule_commands.command('generate')
@click.option('--period', 'period_id', required=True, help='Schedule period id')
@click.option('--start', 'start_date', required=True, help='First date, YYYY-MM-DD')
@click.option('--end', 'end_date', required=True, help='Last date, YYYY-MM-DD')
@click.option('--days', required=True, help='Comma-separated weekdays, 0=Sunday through 6=Saturday')
@click.option('--start-time', required=True, help='Start time, HH:MM')
@click.option('--end-time', required=True, help='End time, HH:MM')
@with_appcontext
def generate(period_id, start_date, end_date, days, start_time, end_time):
    """Generate session instances for a period.

    Example:
        flask schedule generate --period <id> --start 2024-06-01 --end 2024-06-30 \\
            --days 1,3 --start-time 17:00 --end-time 18:30
    """
    try:
        result = generate_instances(period_id, start_date, end_date, days, start_time, end_time)
    except ServiceError as e:
        click.echo(click.style(f'Error: {e.message}', fg='red'))
        raise click.exceptions.Exit(1)

    colour = {'created': 'green', 'noop': 'yellow', 'partial': 'yellow', 'failed': 'red'}[result.status]
    click.echo(click.style(f'Generation {result.status}', fg=colour))
    click.echo(f'  Created: {len(result.created)}')
    click.echo(f'  Already present: {len(result.existing)}')
    for error in result.errors:
        click.echo(click.style(f"  {error['date']}: {error['error']}", fg='red'))

    if result.status == 'failed':
        raise click.exceptions.Exit(1)


@schedule_commands.command('list-periods')
@click.option('--template', 'template_slug', default=None, help='Only periods for this template slug')
@with_appcontext
def list_periods(template_slug):
    """List schedule periods with their instance counts."""
    statement = select(SchedulePeriod).order_by(SchedulePeriod.start_date)
    if template_slug:
        statement = statement.join(SchedulePeriod.template).where(SessionTemplate.slug == template_slug)

    periods = db.session.scalars(statement).all()
    if not periods:
        click.echo('No schedule periods found.')
        return

    today = facility_today()
    for period in periods:
        flags = period_flags(period, today)
        state = 'active' if flags['is_currently_active'] else 'upcoming' if flags['is_upcoming'] else 'past'
        coaches = ', '.join(c.name or c.email for c in period.coaches) or 'TBD'
        click.echo(
            f'{period.id}  {period.template.name} / {period.name}  '
            f'{period.start_date} to {period.end_date}  [{state}]  '
            f'capacity {period.capacity}  coaches {coaches}  instances {len(period.instances)}'
        )
