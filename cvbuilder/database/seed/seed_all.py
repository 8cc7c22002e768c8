from flask.cli import with_appcontext
from cvbuilder.database.seed.seed_users import seed as seed_users
from cvbuilder.database.seed.seed_cvs import seed as seed_cvs
from cvbuilder.extensions import db

import click

@click.command("seed-all")
@with_appcontext
def seed_all():
    """Run all database seeders."""
    click.echo("🌱 Seeding database...")
    db.create_all()
    seed_users()
    seed_cvs()
    click.echo("✅ All seeders completed!")
