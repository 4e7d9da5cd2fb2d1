# Overview: Flask CLI command groups for catalog sync, badge seeding and gamification maintenance.

# backend/reventa/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to reventa (PowerShell: $env:FLASK_APP="reventa").
# - Use: python -m flask <group> <command> [options]
#
# Catalog cache:
# - python -m flask catalog sync [--max-seconds 300]
#   Pull every product from the store and rewrite catalogo_cache.
# - python -m flask catalog wipe --yes
#   Delete every cached product.
# - python -m flask catalog stats
#   Cache size, freshness and top brands.
#
# Gamification:
# - python -m flask badges seed
#   Create or update the sales badges (idempotent).
# - python -m flask gamification init
#   Recompute levels, brand sales and badges for every user.
# - python -m flask brands add --slug nadin --name "Nadin" [--emoji 💋] [--logo-url /logos/nadin.png] [--active]
#   Enroll a brand in the ambassador program.

import click
from flask.cli import with_appcontext

from .services import catalog_service, gamification_service
from .services.catalog_service import CatalogSyncError
from .services.store_client import StoreConfigError, get_store_client
from .validation import ValidationError, ConflictError


@click.group('catalog')
def catalog_group():
    """Catalog cache commands."""


@catalog_group.command('sync')
@click.option('--max-seconds', type=int, default=None, help='Time budget (defaults to SYNC_MAX_DURATION_SECONDS)')
@with_appcontext
def sync_catalog(max_seconds):
    """Synchronize the catalog cache from the store API."""
    click.echo("START Syncing catalog...")
    try:
        with get_store_client() as client:
            result = catalog_service.sync_catalog(client, max_duration_seconds=max_seconds)
    except (StoreConfigError, CatalogSyncError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(
        f"PASS {result['count']} products "
        f"({result['created']} new, {result['updated']} updated, {result['deleted']} removed) "
        f"in {result['durationMs']}ms"
    )


@catalog_group.command('wipe')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def wipe_catalog(yes):
    """Delete every cached product."""
    if not yes:
        click.confirm("This deletes the whole catalog cache. Continue?", abort=True)
    deleted = catalog_service.wipe_cache()
    click.echo(f"PASS Deleted {deleted} cached products")


@catalog_group.command('stats')
@with_appcontext
def catalog_stats():
    """Show cache size, freshness and top brands."""
    status = catalog_service.sync_status()
    sync = status["sincronizacion"]

    click.echo(f"Status:        {status['estado']} ({status['mensaje']})")
    click.echo(f"Last sync:     {sync['ultima'] or 'never'}")
    click.echo(f"Products:      {status['productos']['total']}")
    click.echo(f"Unique brands: {status['productos']['marcasUnicas']}")
    if status["topMarcas"]:
        click.echo("\nTop brands:")
        for entry in status["topMarcas"]:
            click.echo(f"  {entry['marca']:<30} {entry['cantidad']}")


@click.group('badges')
def badges_group():
    """Badge catalog commands."""


@badges_group.command('seed')
@with_appcontext
def seed_badges():
    """Create or update the sales badges."""
    result = gamification_service.seed_badges()
    click.echo(f"PASS {result['created']} created, {result['existing']} already existed ({result['total']} total)")


@click.group('gamification')
def gamification_group():
    """Gamification maintenance commands."""


@gamification_group.command('init')
@with_appcontext
def init_gamification():
    """Recompute levels, brand sales and badges for every user."""
    summary = gamification_service.init_gamification()
    click.echo(
        f"PASS {summary['usersProcessed']} users, "
        f"{summary['badgesAssigned']} badges assigned, {summary['pointsAdded']} points added"
    )


@click.group('brands')
def brands_group():
    """Brand ambassador program commands."""


@brands_group.command('add')
@click.option('--slug', required=True, help='Brand slug (lowercased, spaces become dashes)')
@click.option('--name', required=True, help='Brand name exactly as it appears on order lines')
@click.option('--emoji', default=None, help='Fallback badge emoji')
@click.option('--logo-url', default=None, help='Logo shown on ambassador badges')
@click.option('--active', is_flag=True, help='Enable the brand right away')
@with_appcontext
def add_brand(slug, name, emoji, logo_url, active):
    """Enroll a brand in the ambassador program."""
    try:
        brand = gamification_service.create_brand(slug, name, emoji, logo_url, active)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    state = "active" if brand.is_active else "inactive"
    click.echo(f"PASS Brand {brand.brand_name} ({brand.brand_slug}) created, {state}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(catalog_group)
    app.cli.add_command(badges_group)
    app.cli.add_command(gamification_group)
    app.cli.add_command(brands_group)
