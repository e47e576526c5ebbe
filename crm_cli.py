#!/usr/bin/env python3
"""
CRM Board CLI
─────────────
Command line front end for the CRM board. Works on the local db.json, or on a
running crm_server.py when --server (or CRM_SERVER_URL) is given.

Usage:
    python crm_cli.py list
    python crm_cli.py add --phone 9123456789 --name "Sara" --shop-name "Sara Tailoring"
    python crm_cli.py move <customer-id> customer
    python crm_cli.py remind <customer-id> 2026-10-20T09:30
    python crm_cli.py call <customer-id> --notes "No answer"
    python crm_cli.py import customers.csv
    python crm_cli.py template template.csv
    python crm_cli.py whatsapp <customer-id> --message 1
    python crm_cli.py watch                 # run the reminder sweep until Ctrl-C
"""

import argparse
import logging
import sys
import time
import webbrowser
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import requests

from pkg.crm.board import column_cards
from pkg.crm.config import Config, ConfigError
from pkg.crm.importer import export_template, read_csv_file
from pkg.crm.reminders import ReminderInputError, parse_reminder
from pkg.crm.schema import TAG_COLORS, normalize_phone
from pkg.crm.session import BoardSession
from pkg.crm.store import StoreError

logger = logging.getLogger("crm_cli")


def _fmt_time(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


def format_customer(customer) -> str:
    """One customer as a few lines of text."""
    lines = [f"🎯 {customer.id}: {customer.name} ({customer.shop_name})"]
    lines.append(f"📞 {customer.phone}  🏙 {customer.city}  ✂️ {customer.shop_type}")
    if customer.tags:
        lines.append("🏷 " + ", ".join(f"{t.text}[{t.color}]" for t in customer.tags))
    if customer.reminder is not None:
        lines.append(f"⏰ {_fmt_time(customer.reminder)}")
    if customer.notes:
        lines.append(f"📝 {customer.notes}")
    for call in customer.call_history:
        lines.append(f"   ☎️ {call.id} {_fmt_time(call.timestamp)} {call.notes}")
    return "\n".join(lines)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Commands
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def cmd_list(session: BoardSession, args) -> int:
    board = session.board
    for column_id in board.column_order:
        column = board.columns.get(column_id)
        if column is None:
            continue
        cards = column_cards(board, column_id)
        print(f"📋 {column.title} [{column_id}] ({len(cards)})")
        for customer in cards:
            print(f"  • {customer.id}: {customer.name} ({customer.phone})")
    return 0


def cmd_show(session: BoardSession, args) -> int:
    customer = session.customer(args.customer_id)
    if customer is None:
        print(f"Customer {args.customer_id} not found.")
        return 1
    print(format_customer(customer))
    return 0


def cmd_add(session: BoardSession, args) -> int:
    customer = session.state.add_customer({
        "phone": args.phone,
        "name": args.name,
        "shopName": args.shop_name,
        "shopType": args.shop_type,
        "city": args.city,
    })
    print(f"Added {customer.id} ({customer.phone})")
    return 0


def cmd_edit(session: BoardSession, args) -> int:
    customer = session.customer(args.customer_id)
    if customer is None:
        print(f"Customer {args.customer_id} not found.")
        return 1
    changes = {
        attr: value for attr, value in (
            ("phone", args.phone),
            ("name", args.name),
            ("shop_name", args.shop_name),
            ("shop_type", args.shop_type),
            ("city", args.city),
        ) if value is not None
    }
    if "phone" in changes:
        changes["phone"] = normalize_phone(changes["phone"])
    # update_customer overwrites the whole record: start from the stored one
    session.state.update_customer(replace(customer, **changes))
    print(f"Updated {customer.id}")
    return 0


def cmd_delete(session: BoardSession, args) -> int:
    session.state.delete_customer(args.customer_id)
    print(f"Deleted {args.customer_id}")
    return 0


def cmd_move(session: BoardSession, args) -> int:
    session.state.move_customer(args.customer_id, args.column_id)
    print(f"Moved {args.customer_id} to {args.column_id}")
    return 0


def cmd_rename(session: BoardSession, args) -> int:
    session.state.rename_column(args.column_id, args.title)
    column = session.board.columns.get(args.column_id)
    print(f"Column {args.column_id}: {column.title if column else '(missing)'}")
    return 0


def cmd_tag(session: BoardSession, args) -> int:
    if args.remove:
        session.state.remove_tag(args.customer_id, args.text)
    else:
        session.state.add_tag(args.customer_id, args.text, args.color)
    customer = session.customer(args.customer_id)
    if customer:
        print("🏷 " + ", ".join(f"{t.id}={t.text}" for t in customer.tags))
    return 0


def cmd_remind(session: BoardSession, args) -> int:
    if args.when == "clear":
        session.state.set_reminder(args.customer_id, None)
        print(f"Reminder cleared for {args.customer_id}")
        return 0
    try:
        timestamp = parse_reminder(args.when)
    except ReminderInputError as e:
        print(str(e))
        return 2
    session.state.set_reminder(args.customer_id, timestamp)
    print(f"Reminder for {args.customer_id} at {_fmt_time(timestamp)}")
    return 0


def cmd_note(session: BoardSession, args) -> int:
    session.state.set_notes(args.customer_id, args.text)
    print(f"Notes saved for {args.customer_id}")
    return 0


def cmd_call(session: BoardSession, args) -> int:
    customer = session.state.log_call(args.customer_id)
    if customer is None:
        print(f"Customer {args.customer_id} not found.")
        return 1
    call = customer.call_history[0]
    if args.notes:
        session.state.edit_call_notes(customer.id, call.id, args.notes)
    print(f"Call {call.id} logged for {customer.id}")
    return 0


def cmd_call_notes(session: BoardSession, args) -> int:
    session.state.edit_call_notes(args.customer_id, args.call_id, args.notes)
    print(f"Call {args.call_id} updated")
    return 0


def cmd_call_delete(session: BoardSession, args) -> int:
    session.state.delete_call(args.customer_id, args.call_id)
    print(f"Call {args.call_id} deleted")
    return 0


def cmd_import(session: BoardSession, args) -> int:
    ids = session.import_csv(read_csv_file(args.path))
    print(f"Imported {len(ids)} customer(s)")
    return 0


def cmd_sweep(session: BoardSession, args) -> int:
    fired = session.sweeper.tick()
    print(f"{len(fired)} reminder(s) fired")
    return 0


def cmd_watch(session: BoardSession, args) -> int:
    session.start()
    logger.info("Watching reminders, Ctrl-C to stop")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping")
    return 0


def cmd_whatsapp(session: BoardSession, args) -> int:
    if args.list_messages:
        for i, message in enumerate(session.cfg.whatsapp_messages):
            print(f"{i}: {message}")
        return 0
    link = session.whatsapp_link(args.customer_id, args.message)
    if link is None:
        print("Unknown customer or message index.")
        return 1
    print(link)
    if args.open:
        webbrowser.open(link)
    return 0


# Commands that need no board at all
def cmd_template(args) -> int:
    Path(args.path).write_bytes(export_template(include_tags=args.tags))
    print(f"Template written to {args.path}")
    return 0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Entry point
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CRM Board CLI")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--db", help="Path to db.json (overrides CRM_DB env var)")
    parser.add_argument("--server", help="CRM server URL, e.g. http://localhost:3001")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Columns and their cards").set_defaults(func=cmd_list)

    p = sub.add_parser("show", help="One customer in detail")
    p.add_argument("customer_id")
    p.set_defaults(func=cmd_show)

    for name, func, needs_id in (("add", cmd_add, False), ("edit", cmd_edit, True)):
        p = sub.add_parser(name, help=f"{name.capitalize()} a customer")
        if needs_id:
            p.add_argument("customer_id")
        default = None if needs_id else ""
        p.add_argument("--phone", required=not needs_id, default=default)
        p.add_argument("--name", default=default)
        p.add_argument("--shop-name", default=default)
        p.add_argument("--shop-type", default=default)
        p.add_argument("--city", default=default)
        p.set_defaults(func=func)

    p = sub.add_parser("delete", help="Delete a customer")
    p.add_argument("customer_id")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("move", help="Move a customer to another column")
    p.add_argument("customer_id")
    p.add_argument("column_id")
    p.set_defaults(func=cmd_move)

    p = sub.add_parser("rename-column", help="Rename a column")
    p.add_argument("column_id")
    p.add_argument("title")
    p.set_defaults(func=cmd_rename)

    p = sub.add_parser("tag", help="Add a tag (or remove one by id with --remove)")
    p.add_argument("customer_id")
    p.add_argument("text", help="Tag text, or tag id with --remove")
    p.add_argument("--color", choices=TAG_COLORS, default=TAG_COLORS[0])
    p.add_argument("--remove", action="store_true")
    p.set_defaults(func=cmd_tag)

    p = sub.add_parser("remind", help="Set a reminder (YYYY-MM-DDTHH:MM) or 'clear'")
    p.add_argument("customer_id")
    p.add_argument("when")
    p.set_defaults(func=cmd_remind)

    p = sub.add_parser("note", help="Set a customer's free-text notes")
    p.add_argument("customer_id")
    p.add_argument("text")
    p.set_defaults(func=cmd_note)

    p = sub.add_parser("call", help="Log a call now")
    p.add_argument("customer_id")
    p.add_argument("--notes", default="")
    p.set_defaults(func=cmd_call)

    p = sub.add_parser("call-notes", help="Edit the notes of a logged call")
    p.add_argument("customer_id")
    p.add_argument("call_id")
    p.add_argument("notes")
    p.set_defaults(func=cmd_call_notes)

    p = sub.add_parser("call-delete", help="Delete a logged call")
    p.add_argument("customer_id")
    p.add_argument("call_id")
    p.set_defaults(func=cmd_call_delete)

    p = sub.add_parser("import", help="Import customers from a CSV file")
    p.add_argument("path")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("template", help="Write the empty CSV import template")
    p.add_argument("path")
    p.add_argument("--tags", action="store_true", help="Include the tags column")
    p.set_defaults(func=cmd_template, standalone=True)

    sub.add_parser("sweep", help="Run the reminder sweep once").set_defaults(func=cmd_sweep)
    sub.add_parser("watch", help="Run the reminder sweep until Ctrl-C").set_defaults(func=cmd_watch)

    p = sub.add_parser("whatsapp", help="WhatsApp link with a canned message")
    p.add_argument("customer_id", nargs="?")
    p.add_argument("--message", type=int, default=0, help="Index of the canned message")
    p.add_argument("--list-messages", action="store_true")
    p.add_argument("--open", action="store_true", help="Open the link in a browser")
    p.set_defaults(func=cmd_whatsapp)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [crm_cli] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    if getattr(args, "standalone", False):
        return args.func(args)

    try:
        cfg = Config.load(args.config)
        if args.db:
            cfg.db_path = args.db
            cfg.resolve_paths()
        if args.server:
            cfg.server_url = args.server
        session = BoardSession(cfg)
    except (ConfigError, StoreError, requests.RequestException, ValueError) as e:
        logger.error(str(e))
        return 1

    try:
        return args.func(session, args)
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
