"""
Flask CLI commands.

    flask --app api init-db            # create tables
    flask --app api init-db --seed     # ... and add the default accounts if there are no users
"""
import click
from flask import current_app

from models import storage
from models.user import User
from utils.permissions import Role
from utils.security import hash_password

DEFAULT_USERS = (
    ("dev@orbit.com", "Developer", "dev123", Role.SUPERADMIN),
    ("admin@orbit.com", "Admin", "admin123", Role.ADMIN),
    ("staff@orbit.com", "Staff", "staff123", Role.EMPLOYEE),
)


def seed_default_users() -> int:
    """Insert DEFAULT_USERS when the users table is empty. Returns how many were added."""
    if storage.count(User):
        return 0
    for email, name, password, role in DEFAULT_USERS:
        storage.new(User(email=email, name=name, password_hash=hash_password(password), role=role))
    storage.save()
    return len(DEFAULT_USERS)


@click.command("init-db")
@click.option("--seed/--no-seed", default=False, help="Add the default accounts to an empty database.")
def init_db_command(seed):
    """Create the schema (idempotent) and optionally seed users."""
    # create_app() already ran create_all on DATABASE_URL
    click.echo(f"Database ready at {current_app.config['DATABASE_URL']}")
    if seed:
        added = seed_default_users()
        if added:
            click.echo("Default users seeded:")
            for email, _, password, role in DEFAULT_USERS:
                click.echo(f"  - {email} ({role.value}) / {password}")
        else:
            click.echo("Users already present, nothing seeded.")


def register_commands(app):
    app.cli.add_command(init_db_command)
