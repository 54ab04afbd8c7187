# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/financehub/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Load the demo representatives and vouchers, then reconcile balances.
#
# Vouchers:
# - python -m flask vouchers list --status pending --rep rep1
#   List vouchers newest first.
# - python -m flask vouchers reconcile
#   Recompute every representative balance from the full voucher log.
#
# Reports:
# - python -m flask reports summary
#   Print the AI financial summary (needs GEMINI_API_KEY).

import click
from datetime import timedelta
from decimal import Decimal
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Representative, Voucher
from .models.vouchers import STATUS_APPROVED, STATUS_PENDING, VOUCHER_TYPE_PAYMENT, VOUCHER_TYPE_RECEIPT
from .services import representative_service, summary_service, voucher_service
from .services.reconcile_service import refresh_representatives
from .time_utils import utcnow, to_utc_z


DEMO_REPRESENTATIVES = [
    ("rep1", "أحمد محمد"),
    ("rep2", "سارة خالد"),
    ("rep3", "محمود علي"),
]

DEMO_VOUCHERS = [
    {
        "id": "t1",
        "type": VOUCHER_TYPE_RECEIPT,
        "amount": Decimal("5000"),
        "representative_id": "rep1",
        "customer_name": "شركة الأمل للتجارة",
        "description": "دفعة تحت الحساب بضائع شهر 5",
        "status": STATUS_APPROVED,
    },
    {
        "id": "t2",
        "type": VOUCHER_TYPE_PAYMENT,
        "amount": Decimal("200"),
        "representative_id": "rep2",
        "customer_name": "محطة وقود السلام",
        "description": "بنزين السيارة - رحلة الشمال",
        "status": STATUS_PENDING,
    },
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@system_group.command('seed')
@with_appcontext
def seed():
    """Load demo representatives and vouchers (idempotent), then reconcile."""
    click.echo("START Seeding demo data...")

    for rep_id, name in DEMO_REPRESENTATIVES:
        if db.session.get(Representative, rep_id):
            click.echo(f"WARN  Representative '{rep_id}' already exists, skipping...")
            continue
        db.session.add(Representative(id=rep_id, name=name))
        click.echo(f"PASS Created representative: {name} ({rep_id})")
    db.session.flush()

    now = utcnow()
    for offset, row in enumerate(DEMO_VOUCHERS):
        if db.session.get(Voucher, row["id"]):
            click.echo(f"WARN  Voucher '{row['id']}' already exists, skipping...")
            continue
        rep = db.session.get(Representative, row["representative_id"])
        voucher = Voucher(
            date=now - timedelta(minutes=offset),
            representative_name=rep.name,
            decided_at=now if row["status"] == STATUS_APPROVED else None,
            decided_by="seed" if row["status"] == STATUS_APPROVED else None,
            **row,
        )
        db.session.add(voucher)
        click.echo(f"PASS Created voucher: {voucher.id} {voucher.type} {voucher.amount} ({voucher.status})")

    refresh_representatives()
    db.session.commit()
    click.echo("DONE Demo data loaded")


@click.group('vouchers')
def vouchers_group():
    """Voucher inspection and reconciliation."""


@vouchers_group.command('list')
@click.option('--status', default=None, help='pending, approved or rejected')
@click.option('--rep', 'representative_id', default=None, help='Representative ID')
@click.option('--limit', type=int, default=50)
@with_appcontext
def list_vouchers_cli(status, representative_id, limit):
    """List vouchers newest first."""
    vouchers = voucher_service.list_vouchers(representative_id=representative_id, status=status, limit=limit)
    if not vouchers:
        click.echo("No vouchers found.")
        return

    click.echo("\n" + "="*96)
    click.echo(f"{'ID':<34} {'Type':<8} {'Amount':>12} {'Rep':<8} {'Status':<9} {'Date'}")
    click.echo("="*96)
    for v in vouchers:
        click.echo(f"{v.id:<34} {v.type:<8} {str(v.amount):>12} {v.representative_id:<8} {v.status:<9} {to_utc_z(v.date)}")
    click.echo("="*96 + "\n")


@vouchers_group.command('reconcile')
@with_appcontext
def reconcile_cli():
    """Recompute all representative balances from the voucher log."""
    result = refresh_representatives()
    db.session.commit()

    for rep in representative_service.list_representatives():
        click.echo(
            f"{rep.id:<10} {rep.name:<24} receipts={rep.total_receipts} "
            f"payments={rep.total_payments} balance={rep.current_balance}"
        )
    if result.unknown_representative_ids:
        click.echo(f"WARN  Vouchers for unknown representatives: {', '.join(sorted(result.unknown_representative_ids))}")


@click.group('reports')
def reports_group():
    """Reporting commands."""


@reports_group.command('summary')
@with_appcontext
def summary_cli():
    """Print the AI financial summary."""
    vouchers = [v.to_dict() for v in voucher_service.list_vouchers()]
    reps = [rep.to_dict() for rep in representative_service.list_representatives()]
    client = summary_service.SummaryClient.from_config(current_app.config)
    result = summary_service.generate_summary(
        vouchers, reps, client, language=current_app.config.get("SUMMARY_LANGUAGE", "Arabic")
    )
    click.echo(f"[{result.status}]")
    click.echo(result.text)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(vouchers_group)
    app.cli.add_command(reports_group)
