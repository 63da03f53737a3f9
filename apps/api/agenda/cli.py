"""CLI tools for schedule administration."""

from uuid import UUID

import click

from agenda.core.structured_logging import configure_logging
from agenda.db.base import Base
from agenda.db.models import Provider, Tenant, TenantSettings
from agenda.db.session import SessionLocal, engine


@click.group()
def cli():
    """Agenda CLI tools."""
    configure_logging()


@cli.command()
def init_db():
    """
    Create all tables directly from the models.

    Meant for local development; deployed databases use alembic.

    Example:
        python -m agenda.cli init-db
    """
    import agenda.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    click.echo("✓ Tables created")


@cli.command()
@click.option("--name", required=True, help="Tenant name")
@click.option("--slug", required=True, help="URL-friendly slug (lowercase, no spaces)")
@click.option("--min-cancel-notice-hours", default=0, help="Hours of notice required to cancel (0 disables)")
@click.option("--buffer-minutes", default=0, help="Minutes kept free around appointments (0 disables)")
def create_tenant(name: str, slug: str, min_cancel_notice_hours: int, buffer_minutes: int):
    """
    Create a tenant with its scheduling settings.

    Example:
        python -m agenda.cli create-tenant --name "Acme Salon" --slug "acme"
    """
    db = SessionLocal()
    try:
        slug = slug.lower().strip()
        if not slug.replace("-", "").replace("_", "").isalnum():
            click.echo("❌ Slug must be alphanumeric (with optional hyphens/underscores)")
            return

        existing = db.query(Tenant).filter(Tenant.slug == slug).first()
        if existing:
            click.echo(f"❌ Tenant with slug '{slug}' already exists")
            return

        tenant = Tenant(name=name, slug=slug)
        tenant.settings = TenantSettings(
            min_cancel_notice_hours=max(0, min_cancel_notice_hours),
            buffer_between_appointments_min=max(0, buffer_minutes),
        )
        db.add(tenant)
        db.commit()

        click.echo(f"✓ Created tenant: {name}")
        click.echo(f"  ID: {tenant.id}")
        click.echo(f"  Slug: {slug}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--tenant-slug", required=True, help="Tenant slug")
@click.option("--name", required=True, help="Provider display name")
@click.option("--user-id", required=True, help="Account id that manages this schedule")
@click.option("--location-id", default=None, help="Optional default location id")
def create_provider(tenant_slug: str, name: str, user_id: str, location_id: str | None):
    """
    Register a provider whose schedule can hold commitments.

    Example:
        python -m agenda.cli create-provider --tenant-slug acme --name "Ana" \\
            --user-id 6f1c0b1e-0000-4000-8000-000000000001
    """
    db = SessionLocal()
    try:
        tenant = db.query(Tenant).filter(Tenant.slug == tenant_slug.lower()).first()
        if not tenant:
            click.echo(f"❌ Tenant not found: {tenant_slug}")
            return

        provider = Provider(
            tenant_id=tenant.id,
            name=name,
            user_id=UUID(user_id),
            location_id=UUID(location_id) if location_id else None,
        )
        db.add(provider)
        db.commit()

        click.echo(f"✓ Created provider: {name}")
        click.echo(f"  ID: {provider.id}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, help="Bind port")
def serve(host: str, port: int):
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("agenda.main:app", host=host, port=port)


if __name__ == "__main__":
    cli()
