import click
from flask import current_app
from flask.cli import with_appcontext
from spacebooking.services.reservation_service import ReservationService


@click.command('sweep-reservations')
@with_appcontext
def sweep_reservations_command():
    """Close out confirmed reservations whose time slot has ended."""
    counts = ReservationService.sweep_finished()
    current_app.logger.info("Sweep finished: %s", counts)
    click.echo(f"{counts['completed']} completed, {counts['no_show']} no-show.")


def register_commands(app):
    app.cli.add_command(sweep_reservations_command)
