"""
Tests for the SQLAlchemy backend against an in-memory SQLite database.
"""
import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path

from sqlalchemy import select

from inventory_ledger import models
from inventory_ledger.db import OfflineBackend, RelationalBackend, create_backend
from inventory_ledger.db.connection import DatabaseConnection
from inventory_ledger.entities import ArchiveRecord, InventoryItem, Supplier
from inventory_ledger.exceptions import BackendUnavailableError
from inventory_ledger.tests.helpers import a4_paper


class BackendTestCase(unittest.TestCase):
    def setUp(self):
        self.connection = DatabaseConnection('sqlite://')
        self.backend = RelationalBackend(self.connection)
        self.backend.create_all_tables()

    def tearDown(self):
        self.connection.drop_all_tables()
        self.backend.close()

    def rows(self, model):
        with self.connection.session_scope() as session:
            return session.execute(select(model)).scalars().all()

    def add_user(self, username):
        with self.connection.session_scope() as session:
            user = models.User(username=username, role='cashier')
            session.add(user)
            session.flush()
            return user.id


class TestItems(BackendTestCase):
    def test_connection(self):
        self.assertTrue(self.backend.test_connection())

    def test_insert_load_update_delete(self):
        item_id = self.backend.insert_item(a4_paper())
        self.assertGreater(item_id, 0)

        loaded = self.backend.load_all_items()
        self.assertEqual([(i.id, i.name, i.quantity) for i in loaded], [(item_id, 'A4 Paper', 500)])

        changed = loaded[0]
        changed.remove_stock(450)
        self.assertTrue(self.backend.update_item(changed))
        row = self.rows(models.InventoryItem)[0]
        self.assertEqual((row.quantity, row.stock_out, row.low_stock), (50, 450, True))

        self.assertTrue(self.backend.delete_item(item_id))
        self.assertEqual(self.backend.load_all_items(), [])

    def test_update_and_delete_unknown_id(self):
        self.assertFalse(self.backend.update_item(InventoryItem(id=77, name='Ghost')))
        self.assertFalse(self.backend.delete_item(77))

    def test_invalid_rows_skipped_on_load(self):
        self.backend.insert_item(a4_paper())
        with self.connection.session_scope() as session:
            session.add(models.InventoryItem(name='Broken', quantity=-4))

        self.assertEqual([i.name for i in self.backend.load_all_items()], ['A4 Paper'])


class TestAuditMirrors(BackendTestCase):
    def test_transaction_resolves_item_and_user(self):
        item_id = self.backend.insert_item(a4_paper())
        user_id = self.add_user('CASHIER')

        self.assertTrue(self.backend.insert_transaction('A4 Paper', 'SALE', 3, 'CASHIER [Tx:abc]',
                                                        datetime(2024, 6, 1, 12, 0)))
        self.assertTrue(self.backend.insert_transaction('Ghost', 'STOCK IN', 1, 'NOBODY'))

        first, second = self.rows(models.Transaction)
        self.assertEqual((first.item_id, first.user_id), (item_id, user_id))
        self.assertEqual(first.description, 'SALE - A4 Paper')
        self.assertEqual(first.last_updated, datetime(2024, 6, 1, 12, 0))
        self.assertEqual((second.item_id, second.user_id), (None, None))

    def test_archive_note(self):
        item_id = self.backend.insert_item(a4_paper())
        record = ArchiveRecord(original_item_name='A4 Paper', category='Paper', type='Used Item',
                               quantity_used=10, unit_price=0.1, supplier='', used_by='CASHIER',
                               reason='Sold via POS', date_used=datetime(2024, 6, 1, 9, 0))

        self.assertTrue(self.backend.insert_archive(record))

        row = self.rows(models.Archive)[0]
        self.assertEqual(row.item_id, item_id)
        self.assertEqual(row.archive_date, date(2024, 6, 1))
        self.assertEqual(row.note, record.note())

    def test_stock_alert(self):
        item_id = self.backend.insert_item(a4_paper())
        self.assertTrue(self.backend.insert_stock_alert(item_id, date(2024, 6, 1), 100, 'Low'))
        self.assertEqual(self.rows(models.StockAlert)[0].minimum_stock, 100)

    def test_rejected_statement_returns_sentinel(self):
        self.assertFalse(self.backend.insert_stock_alert(1, date(2024, 6, 1), None, 'Low'))
        self.assertEqual(self.rows(models.StockAlert), [])


class TestReferenceData(BackendTestCase):
    def test_supplier_upsert_and_delete(self):
        first = self.backend.insert_supplier(Supplier(name='Vinyl Crafts', contact_number='111'))
        second = self.backend.insert_supplier(Supplier(name='Vinyl Crafts', contact_number='222'))

        self.assertEqual(first, second)
        self.assertEqual(self.rows(models.Supplier)[0].contact_number, '222')
        self.assertTrue(self.backend.delete_supplier_by_name('Vinyl Crafts'))
        self.assertFalse(self.backend.delete_supplier_by_name('Vinyl Crafts'))

    def test_categories(self):
        ink = self.backend.insert_category('Ink')
        self.assertEqual(self.backend.insert_category('Ink'), ink)
        self.backend.insert_category('Heat Press', 'Sublimation supplies')
        self.assertEqual(self.backend.insert_category('  '), -1)

        self.assertEqual(self.backend.get_all_categories(), ['Heat Press', 'Ink'])
        self.assertTrue(self.backend.delete_category('Ink'))
        self.assertEqual(self.backend.get_all_categories(), ['Heat Press'])


class TestPointOfSale(BackendTestCase):
    def test_header_total_accumulates_without_sale_total(self):
        self.backend.insert_item(a4_paper())
        self.backend.insert_pos_sale_with_transaction('tx-1', 'CASHIER', 'A4 Paper', 10, 1.0)
        self.backend.insert_pos_sale_with_transaction('tx-1', 'CASHIER', 'Ghost', 2, 7.0)

        headers = self.rows(models.PosTransaction)
        self.assertEqual(len(headers), 1)
        self.assertAlmostEqual(headers[0].total_amount, 8.0)
        lines = self.rows(models.PosSale)
        self.assertEqual([line.transaction_ref for line in lines], ['tx-1', 'tx-1'])
        self.assertIsNone(lines[1].item_id)

    def test_header_uses_sale_total_and_payment(self):
        user_id = self.add_user('CASHIER')
        for name, line_total in (('A4 Paper', 1.0), ('Ceramic Mugs', 7.0)):
            self.assertTrue(self.backend.insert_pos_sale_with_transaction(
                'tx-2', 'CASHIER [Tx:tx-2] [ERef:GC-1]', name, 1, line_total,
                payment_method='E-wallet', payment_ref='GC-1', sale_total=8.0,
                tendered_amount=8.0, change_amount=0.0
            ))

        header = self.rows(models.PosTransaction)[0]
        self.assertAlmostEqual(header.total_amount, 8.0)
        self.assertEqual((header.payment_method, header.payment_ref, header.user_id), ('E-wallet', 'GC-1', user_id))

    def test_plain_pos_sale(self):
        self.assertTrue(self.backend.insert_pos_sale('CASHIER', 'A4 Paper', 1, 0.1))
        self.assertIsNone(self.rows(models.PosSale)[0].transaction_ref)


class TestUnavailableBackend(unittest.TestCase):
    def test_unreachable_database_raises_unavailable(self):
        with tempfile.TemporaryDirectory() as tmp:
            url = f"sqlite:///{Path(tmp) / 'missing' / 'ledger.db'}"
            backend = RelationalBackend(DatabaseConnection(url))
            try:
                self.assertFalse(backend.test_connection())
                with self.assertRaises(BackendUnavailableError):
                    backend.load_all_items()
                with self.assertRaises(BackendUnavailableError):
                    backend.insert_item(a4_paper())
            finally:
                backend.close()

    def test_offline_backend(self):
        backend = OfflineBackend()
        self.assertFalse(backend.test_connection())
        with self.assertRaises(BackendUnavailableError):
            backend.insert_transaction('Rope', 'SALE', 1, 'CASHIER')

    def test_create_backend_with_explicit_url(self):
        backend = create_backend('sqlite://')
        try:
            self.assertIsInstance(backend, RelationalBackend)
        finally:
            backend.close()

    def test_create_backend_with_unknown_dialect(self):
        self.assertIsInstance(create_backend('nosuchdialect://host/db'), OfflineBackend)


if __name__ == '__main__':
    unittest.main()
