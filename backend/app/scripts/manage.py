#!/usr/bin/env python3
"""
Management commands for the Electrical Supplier backend

Usage:
    supplier-admin init-db                       # Create missing tables
    supplier-admin init-db --migrate             # Run Alembic migrations instead
    supplier-admin create-admin EMAIL [--role admin] [--name "Jane Doe"]
    supplier-admin list-quotes [--status new] [--limit 20]
    supplier-admin resend-notification QUOTE_ID
    supplier-admin smtp-check
"""

import argparse
import asyncio
import getpass
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from rich.console import Console
from rich.table import Table
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import get_session_local, init_db, close_db
from app.core.exceptions import SupplierError
from app.core.security import get_password_hash
from app.models.admin_user import AdminUser, AdminRole
from app.models.quote_request import QuoteStatus

console = Console()

MIN_PASSWORD_LENGTH = 10


def run_migrations() -> bool:
    """
    Upgrade the schema to head with Alembic.

    Blocking: alembic's env.py starts its own event loop, so call this
    outside any running loop (cmd_init_db uses a worker thread).
    """
    alembic_ini = Path(__file__).resolve().parents[2] / "alembic.ini"
    if not alembic_ini.exists():
        console.print(f"[red]alembic.ini not found at {alembic_ini}[/red]")
        return False

    config = Config(str(alembic_ini))
    # Logging is already configured by the app
    config.attributes["configure_logger"] = False
    command.upgrade(config, "head")
    console.print("[green]Migrations applied[/green]")
    return True


async def cmd_init_db(args) -> int:
    if args.migrate:
        return 0 if await asyncio.to_thread(run_migrations) else 1

    await init_db()
    console.print("[green]Tables created (existing tables left untouched)[/green]")
    return 0


async def cmd_create_admin(args) -> int:
    email = args.email.strip().lower()
    password = args.password or getpass.getpass("Password: ")
    if len(password) < MIN_PASSWORD_LENGTH:
        console.print(f"[red]Password must be at least {MIN_PASSWORD_LENGTH} characters[/red]")
        return 1

    async with get_session_local()() as db:
        existing = (await db.execute(select(AdminUser).where(AdminUser.email == email))).scalar_one_or_none()
        if existing:
            console.print(f"[yellow]Admin {email} already exists[/yellow]")
            return 1

        admin = AdminUser(
            email=email,
            hashed_password=get_password_hash(password),
            full_name=args.name,
            role=AdminRole(args.role),
        )
        db.add(admin)
        await db.commit()

    console.print(f"[green]Created {args.role} account for {email}[/green]")
    return 0


async def cmd_list_quotes(args) -> int:
    from app.modules.quotes.repository import QuoteRepository

    status = QuoteStatus(args.status) if args.status else None
    async with get_session_local()() as db:
        page = await QuoteRepository().list_quotes(db, status=status, page=1, page_size=args.limit)

    table = Table(title=f"Quote Requests ({page['total']} total)", show_header=True, header_style="bold cyan")
    table.add_column("Reference", style="bold")
    table.add_column("Received", style="dim")
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("Phone")
    table.add_column("Product")
    table.add_column("Status")

    for quote in page["items"]:
        table.add_row(
            quote.reference_number,
            quote.created_at.strftime("%Y-%m-%d %H:%M"),
            quote.name,
            quote.email,
            quote.phone,
            quote.product_name or "-",
            quote.status.value,
        )

    console.print(table)
    return 0


async def cmd_resend_notification(args) -> int:
    from app.modules.quotes.dependencies import get_quote_service

    async with get_session_local()() as db:
        quote, sent = await get_quote_service().resend_notification(db, args.quote_id)

    if sent:
        console.print(f"[green]Notification for {quote.reference_number} sent[/green]")
        return 0
    console.print(f"[red]Notification for {quote.reference_number} failed; see logs[/red]")
    return 1


async def cmd_smtp_check(args) -> int:
    from app.services.email_service import email_service

    ok, detail = await email_service.verify_connection()
    console.print(f"[green]{detail}[/green]" if ok else f"[red]{detail}[/red]")
    return 0 if ok else 1


COMMANDS = {
    "init-db": cmd_init_db,
    "create-admin": cmd_create_admin,
    "list-quotes": cmd_list_quotes,
    "resend-notification": cmd_resend_notification,
    "smtp-check": cmd_smtp_check,
}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="supplier-admin",
        description="Electrical Supplier backend management commands",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    init_parser = sub.add_parser("init-db", help="Create database tables")
    init_parser.add_argument("--migrate", action="store_true", help="Run Alembic migrations instead of create_all")

    admin_parser = sub.add_parser("create-admin", help="Create an admin panel account")
    admin_parser.add_argument("email")
    admin_parser.add_argument("--name", default=None)
    admin_parser.add_argument("--role", default=AdminRole.ADMIN.value, choices=[r.value for r in AdminRole])
    admin_parser.add_argument("--password", default=None, help="Prompted for when omitted")

    list_parser = sub.add_parser("list-quotes", help="Show the newest quote requests")
    list_parser.add_argument("--status", choices=[s.value for s in QuoteStatus], default=None)
    list_parser.add_argument("--limit", type=int, default=20)

    resend_parser = sub.add_parser("resend-notification", help="Re-send the staff email for a quote")
    resend_parser.add_argument("quote_id")

    sub.add_parser("smtp-check", help="Verify SMTP connectivity and credentials")
    return parser


async def _run(args) -> int:
    try:
        return await COMMANDS[args.command](args)
    finally:
        await close_db()


def main(argv=None) -> int:
    args = create_parser().parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except SupplierError as e:
        console.print(f"[red]{e.message}[/red]")
        return 1
    except SQLAlchemyError as e:
        console.print(f"[red]Database error: {e}[/red]")
        return 1
    except CommandError as e:
        console.print(f"[red]Migration failed: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
