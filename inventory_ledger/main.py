# inventory_ledger/main.py
import argparse
import sys

from tabulate import tabulate

from inventory_ledger.application import InventoryApplication
from inventory_ledger.config import Config, config
from inventory_ledger.db import OfflineBackend, create_backend
from inventory_ledger.entities import parse_user_descriptor
from inventory_ledger.exceptions import LedgerError
from inventory_ledger.logging_setup import get_logger, log_exception

log = get_logger('cli')


def build_application(args) -> InventoryApplication:
    """Create the application from command-line options."""
    settings = Config(args.config) if args.config else config
    if args.offline:
        backend = OfflineBackend("Relational backend disabled by --offline")
    else:
        backend = create_backend(args.db_url, settings)
    return InventoryApplication(settings, backend, user_provider=lambda: args.user)


def _item_rows(items):
    return [
        [i.id, i.name, i.category, i.quantity, i.min_stock_level, f"{i.unit_price:.2f}",
         i.stock_in, i.stock_out, str(i.status)]
        for i in sorted(items, key=lambda i: i.id)
    ]


ITEM_HEADERS = ['ID', 'Name', 'Category', 'Qty', 'Min', 'Price', 'In', 'Out', 'Status']


def init_db(args):
    """Create the relational schema."""
    settings = Config(args.config) if args.config else config
    backend = create_backend(args.db_url, settings)
    if isinstance(backend, OfflineBackend) or not backend.test_connection():
        print("Relational backend is not reachable")
        return 1
    backend.create_all_tables()
    backend.close()
    print("Database tables created")
    return 0


def list_items(app, args):
    if args.search:
        items = app.ledger.search_items(args.search)
    elif args.category:
        items = app.ledger.find_items_by_category(args.category)
    else:
        items = app.ledger.get_all_items()

    print(tabulate(_item_rows(items), headers=ITEM_HEADERS, tablefmt='grid'))
    stats = app.ledger.get_inventory_stats()
    print(f"\n{stats.total_items} items, {stats.total_quantity} units, value {stats.total_value:.2f}")
    return 0


def low_stock(app, args):
    items = app.ledger.get_low_stock_items() + app.ledger.get_out_of_stock_items()
    if not items:
        print("No low-stock or out-of-stock items")
        return 0
    print(tabulate(_item_rows(items), headers=ITEM_HEADERS, tablefmt='grid'))
    return 0


def history(app, args):
    transactions = app.transaction_log
    if args.item:
        records = transactions.find_by_item(args.item)
    elif args.type:
        try:
            records = transactions.find_by_type(args.type)
        except ValueError as e:
            print(str(e))
            return 1
    else:
        records = transactions.records() if args.all else transactions.visible_records()

    rows = []
    for r in records[-args.limit:]:
        descriptor = parse_user_descriptor(r.user)
        payment = 'E-wallet' if descriptor.payment_ref is not None else ('Cash' if descriptor.transaction_ref else '')
        rows.append([r.date.strftime('%Y-%m-%d %H:%M:%S'), r.item_name, r.type, r.quantity,
                     descriptor.user, payment, f"{r.total_price:.2f}"])

    print(tabulate(rows, headers=['Date', 'Item', 'Type', 'Qty', 'User', 'Payment', 'Total'],
                   tablefmt='grid'))
    return 0


def archive(app, args):
    if args.name:
        records = app.archive.find_by_name(args.name)
    elif args.category:
        records = app.archive.find_by_category(args.category)
    elif args.used_by:
        records = app.archive.find_by_user(args.used_by)
    else:
        records = app.archive.records()

    rows = [[r.id, r.date_used.strftime('%Y-%m-%d %H:%M'), r.original_item_name, r.type,
             r.quantity_used, f"{r.total_value:.2f}", r.used_by, r.reason] for r in records]
    print(tabulate(rows, headers=['ID', 'Date', 'Item', 'Type', 'Qty', 'Value', 'By', 'Reason'],
                   tablefmt='grid'))
    stats = app.archive.get_archive_stats()
    print(f"\n{stats.total_items} records, {stats.total_quantity} units, value {stats.total_value:.2f}")
    return 0


def _require_item(app, name):
    item = app.ledger.find_item_by_name(name)
    if item is None:
        print(f"Item not found: {name}")
    return item


def stock_in(app, args):
    item = _require_item(app, args.name)
    if item is None:
        return 1
    if not app.ledger.add_stock(item, args.amount):
        print(f"Stock in rejected for {item.name}")
        return 1
    print(f"{item.name}: {item.quantity} on hand")
    return 0


def stock_out(app, args):
    item = _require_item(app, args.name)
    if item is None:
        return 1
    if not app.ledger.stock_out(item, args.amount, args.reason):
        print(f"Stock out rejected for {item.name} ({item.quantity} on hand)")
        return 1
    print(f"{item.name}: {item.quantity} on hand")
    return 0


def end_of_day(app, args):
    count = app.ledger.end_of_day()
    print(f"End of day complete: counters reset on {count} items")
    return 0


def undo_end_of_day(app, args):
    if not app.ledger.restore_from_backup():
        print("No usable backup to restore")
        return 1
    print("Inventory restored from backup")
    return 0


def migrate(app, args):
    runs = {
        'items': app.migration.migrate_items_to_backend,
        'transactions': app.migration.migrate_transactions_to_backend,
        'archive': app.migration.migrate_archive_to_backend,
    }
    targets = list(runs) if args.what == 'all' else [args.what]
    rows = []
    for target in targets:
        result = runs[target]()
        rows.append([target, result.attempted, result.migrated, result.failed])
    print(tabulate(rows, headers=['Records', 'Attempted', 'Migrated', 'Failed'], tablefmt='grid'))
    return 0 if all(row[3] == 0 for row in rows) else 1


COMMANDS = {
    'items': list_items,
    'low-stock': low_stock,
    'history': history,
    'archive': archive,
    'stock-in': stock_in,
    'stock-out': stock_out,
    'end-of-day': end_of_day,
    'undo-end-of-day': undo_end_of_day,
    'migrate': migrate,
}


def build_parser():
    parser = argparse.ArgumentParser(description='Inventory stock ledger')
    parser.add_argument('--config', help='Path to settings.ini')
    parser.add_argument('--db-url', help='SQLAlchemy URL of the relational backend')
    parser.add_argument('--offline', action='store_true', help='Run on local snapshot files only')
    parser.add_argument('--user', help='Acting user recorded on changes')

    subparsers = parser.add_subparsers(dest='command', help='Commands')
    subparsers.required = True

    subparsers.add_parser('init-db', help='Create the relational schema')

    items_parser = subparsers.add_parser('items', help='List inventory items')
    items_parser.add_argument('--category', help='Only items in this category')
    items_parser.add_argument('--search', help='Match name, category, description or supplier')

    subparsers.add_parser('low-stock', help='List low-stock and out-of-stock items')

    history_parser = subparsers.add_parser('history', help='Show the transaction history')
    history_parser.add_argument('--item', help='Only entries for this item')
    history_parser.add_argument('--type', help='Only entries of this type (e.g. SALE, "STOCK IN")')
    history_parser.add_argument('--all', action='store_true', help='Include DELETE entries')
    history_parser.add_argument('--limit', type=int, default=50, help='Number of most recent entries')

    archive_parser = subparsers.add_parser('archive', help='Show archived stock')
    archive_parser.add_argument('--name', help='Item name contains')
    archive_parser.add_argument('--category', help='Category')
    archive_parser.add_argument('--user', dest='used_by', help='Acting user')

    stock_in_parser = subparsers.add_parser('stock-in', help='Receive stock')
    stock_in_parser.add_argument('name', help='Item name')
    stock_in_parser.add_argument('amount', type=int, help='Units received')

    stock_out_parser = subparsers.add_parser('stock-out', help='Remove stock')
    stock_out_parser.add_argument('name', help='Item name')
    stock_out_parser.add_argument('amount', type=int, help='Units removed')
    stock_out_parser.add_argument('--reason', default='', help='Reason for removal')

    subparsers.add_parser('end-of-day', help='Reset daily stock-in/stock-out counters')
    subparsers.add_parser('undo-end-of-day', help='Restore the inventory from its backup')

    migrate_parser = subparsers.add_parser('migrate', help='Copy local records into the database')
    migrate_parser.add_argument('what', nargs='?', default='all',
                                choices=['items', 'transactions', 'archive', 'all'])
    return parser


def main(argv=None):
    """Command-line entry point."""
    args = build_parser().parse_args(argv)
    log.info(f"Running command: {args.command}")

    try:
        if args.command == 'init-db':
            return init_db(args)
        app = build_application(args)
    except LedgerError as e:
        log_exception('cli', e, f"{args.command} failed")
        print(f"Error: {e}")
        return 1

    try:
        app.start()
        return COMMANDS[args.command](app, args)
    except LedgerError as e:
        log_exception('cli', e, f"{args.command} failed")
        print(f"Error: {e}")
        return 1
    finally:
        app.stop()


if __name__ == "__main__":
    sys.exit(main())
