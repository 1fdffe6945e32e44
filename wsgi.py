# This file is part of Userbook.
#
# Userbook is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Userbook is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with Userbook.  If not, see <https://www.gnu.org/licenses/>.
#
# This is the entry point for a WSGI server like Gunicorn or uWSGI.
# Example usage: gunicorn --bind 0.0.0.0:8000 wsgi:application
import os

import click
from flask_migrate import upgrade

from userbook import create_app, db
from userbook.backend import LocalUsersBackend
from userbook.directory import LdapDirectory

application = create_app()


# --- Database Setup ---
def run_migrations():
    """
    Applies database migrations on startup, or creates the tables when the
    project has no migrations directory.
    """
    migrations_dir = os.path.join(os.path.dirname(__file__), "migrations")

    with application.app_context():
        if os.path.exists(migrations_dir):
            print("Checking for database migrations...")
            try:
                # This is equivalent to running 'flask db upgrade'
                upgrade()
                print("Database schema is up to date.")
            except Exception as e:  # pylint: disable=broad-exception-caught
                print(f"Error during database migration: {e}")
        else:
            print("WARNING: 'migrations' directory not found. Creating tables directly.")
            db.create_all()


run_migrations()


def _backend_for(account):
    return LocalUsersBackend(account, LdapDirectory.from_config(application.config))


@application.cli.command("sync-addressbook")
@click.argument("account")
def sync_addressbook(account):
    """Reconciles an account's address book with the directory."""
    listing = _backend_for(account).sync_contacts(account)
    click.echo(f"{account}: {listing.status.value}, {len(listing.contacts)} contacts.")
    if listing.error is not None:
        click.echo(f"Error: {listing.error}", err=True)


@application.cli.command("reindex")
@click.argument("account")
def reindex(account):
    """Rebuilds the search index of every card in an account's address book."""
    count = _backend_for(account).reindex()
    click.echo(f"Reindexed {count} contacts for {account}.")


# You can also run this file directly for development:
if __name__ == "__main__":
    # Note: The reloader and debugger should be disabled in production.
    application.run(host="0.0.0.0")
