# commands.py

import click
from flask import current_app
from flask.cli import with_appcontext


@click.command('run-automations')
@click.option('--limit', type=int, default=None, help='Maximum jobs to claim in this sweep')
@with_appcontext
def run_automations(limit):
    """Run one automation sweep without a Celery worker"""
    stats = current_app.services.get('automation').run_scheduler(limit=limit)
    click.echo(f"Claimed {stats['claimed']}, executed {stats['executed']}, failed {stats['failed']}")


@click.command('create-broker')
@click.option('--name', prompt=True, help='Broker name')
@click.option('--email', prompt=True, help='Broker email address')
@click.option('--timezone', default='America/New_York', help='IANA timezone used for meeting reminders')
@with_appcontext
def create_broker(name, email, timezone):
    """Create a broker tenant"""
    result = current_app.services.get('broker').create_broker({
        'name': name,
        'email': email,
        'timezone': timezone,
    })

    if result.is_success:
        click.echo(f'Broker created: {result.data.email} (id {result.data.id}, slug {result.data.slug})')
    else:
        click.echo(f'Failed to create broker: {result.error}')


def init_app(app):
    """Register commands with the Flask app"""
    app.cli.add_command(run_automations)
    app.cli.add_command(create_broker)
