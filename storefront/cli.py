# storefront/cli.py
import os

import click
from flask import Flask
from flask.cli import AppGroup, with_appcontext

receipts_cli = AppGroup("receipts", help="Receipt email outbox.")
orphans_cli = AppGroup("orphans", help="Orphan payment ledger.")


@receipts_cli.command("retry")
def retry_receipts():
    """Send every unsent receipt whose retry window is due."""
    from storefront.services.receipts import retry_due_receipts

    processed = retry_due_receipts()
    click.echo(f"processed {processed} receipt(s)")


@orphans_cli.command("sweep")
@click.option("--min-age", type=int, default=None,
              help="Skip orphans younger than this many minutes (default ORPHAN_SWEEP_MIN_AGE)")
def sweep_orphans(min_age: int | None):
    """Re-verify unresolved orphan payments and annotate them. Never refunds."""
    from storefront.services.reconciliation import sweep_orphans as run_sweep

    summary = run_sweep(min_age)
    click.echo(
        f"checked {summary['checked']}: {summary['alreadyResolved']} reconciled, "
        f"{summary['flagged']} flagged, {summary['amountMismatches']} amount mismatch(es)"
    )
    for err in summary["errors"]:
        click.echo(f"  ! {err}", err=True)


@click.command("create-admin")
@click.option("--username", default=lambda: os.environ.get("ADMIN_USERNAME", "admin"),
              show_default=True, help="Admin username")
@click.option("--email", default=lambda: os.environ.get("ADMIN_EMAIL", "admin@example.com"),
              show_default=True, help="Admin e-mail")
@click.option("--password", default=lambda: os.environ.get("ADMIN_PASSWORD"),
              help="Password (prompted when omitted)")
@click.option("--force", is_flag=True, default=False,
              help="Reset password of an existing account")
@with_appcontext
def create_admin(username: str, email: str, password: str | None, force: bool):
    """Create or reset a staff admin account (bcrypt hash)."""
    from storefront.extensions import db
    from storefront.models.user import User

    if not password:
        password = click.prompt("Password", hide_input=True, confirmation_prompt=True)

    u = User.query.filter_by(username=username).first()
    if u and not force:
        click.echo(f"User '{username}' already exists. Use --force to reset the password.")
        return

    if not u:
        u = User(username=username, email=email)
        db.session.add(u)
    u.is_admin = True
    u.set_password(password)
    db.session.commit()
    click.echo(f"Admin ready: {username}")


def register_cli(app: Flask) -> None:
    app.cli.add_command(receipts_cli)
    app.cli.add_command(orphans_cli)
    app.cli.add_command(create_admin)
