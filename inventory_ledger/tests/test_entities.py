"""
Tests for the ledger records and their snapshot shape.
"""
import dataclasses
import unittest
from datetime import datetime

from inventory_ledger.entities import (
    ArchiveRecord, ArchiveType, Category, InventoryItem, StockStatus, TransactionRecord,
    TransactionType, build_user_descriptor, compute_stock_flags, parse_user_descriptor
)
from inventory_ledger.exceptions import ValidationError


class TestStockFlags(unittest.TestCase):
    def test_flags_follow_quantity_and_threshold(self):
        """Low stock is 0 < quantity <= threshold; out of stock is quantity == 0."""
        for quantity in (0, 1, 5, 10, 11, 500):
            for threshold in (0, 1, 10, 100):
                low, out = compute_stock_flags(quantity, threshold)
                self.assertEqual(low, 0 < quantity <= threshold)
                self.assertEqual(out, quantity == 0)
                self.assertFalse(low and out)

    def test_item_derives_flags_on_creation(self):
        item = InventoryItem(name='Rope', quantity=10, min_stock_level=10, low_stock=False, out_of_stock=True)
        self.assertTrue(item.low_stock)
        self.assertFalse(item.out_of_stock)
        self.assertEqual(item.status, StockStatus.LOW_STOCK)


class TestInventoryItem(unittest.TestCase):
    def test_negative_quantity_rejected(self):
        with self.assertRaises(ValidationError):
            InventoryItem(name='Rope', quantity=-1)

    def test_negative_price_rejected(self):
        with self.assertRaises(ValidationError):
            InventoryItem(name='Rope', unit_price=-0.5)

    def test_add_and_remove_stock_update_counters(self):
        item = InventoryItem(name='Eyelets', quantity=5, min_stock_level=2)
        item.add_stock(10)
        item.remove_stock(14)

        self.assertEqual(item.quantity, 1)
        self.assertEqual(item.stock_in, 10)
        self.assertEqual(item.stock_out, 14)
        self.assertTrue(item.low_stock)

    def test_remove_more_than_available_rejected(self):
        item = InventoryItem(name='Eyelets', quantity=5)
        with self.assertRaises(ValidationError):
            item.remove_stock(6)
        self.assertEqual(item.quantity, 5)

    def test_from_dict_ignores_stored_flags(self):
        item = InventoryItem.from_dict({
            'id': 7, 'name': 'Tumblers', 'quantity': 0, 'minStockLevel': 10,
            'unitPrice': 12.0, 'lowStock': True, 'outOfStock': False,
            'lastUpdated': '2024-05-01T09:30:00Z'
        })
        self.assertEqual(item.id, 7)
        self.assertTrue(item.out_of_stock)
        self.assertFalse(item.low_stock)
        self.assertEqual(item.last_updated, datetime(2024, 5, 1, 9, 30))

    def test_from_dict_accepts_array_timestamps(self):
        item = InventoryItem.from_dict({'name': 'Rope', 'lastUpdated': [2024, 5, 1, 9, 30, 15]})
        self.assertEqual(item.last_updated, datetime(2024, 5, 1, 9, 30, 15))

    def test_from_dict_requires_name(self):
        with self.assertRaises(ValidationError):
            InventoryItem.from_dict({'quantity': 3})

    def test_to_dict_uses_snapshot_field_names(self):
        record = InventoryItem(name='Rope', quantity=3, min_stock_level=10).to_dict()
        for key in ('id', 'name', 'category', 'description', 'quantity', 'minStockLevel', 'unitPrice',
                    'supplier', 'lastUpdated', 'lowStock', 'outOfStock', 'stockIn', 'stockOut'):
            self.assertIn(key, record)


class TestArchiveRecord(unittest.TestCase):
    def test_from_item_snapshots_descriptive_fields(self):
        item = InventoryItem(name='Ceramic Mugs', category='Heat Press', quantity=50,
                             unit_price=3.5, supplier='Mug Suppliers')
        record = ArchiveRecord.from_item(item, 4, 'CASHIER', 'Sold via POS')

        self.assertEqual(record.original_item_name, 'Ceramic Mugs')
        self.assertEqual(record.type, 'Used Item')
        self.assertEqual(record.quantity_used, 4)
        self.assertAlmostEqual(record.total_value, 14.0)

    def test_note_format_and_bound(self):
        record = ArchiveRecord(original_item_name='Rope', category='Tarpaulin', type='ARCHIVED',
                               quantity_used=3, unit_price=1.5, supplier='', used_by='MANAGER',
                               reason='Damaged')
        self.assertEqual(record.note(), 'ARCHIVED - Rope - qty:3 - by:MANAGER - reason:Damaged - price:1.50')

        long_reason = dataclasses.replace(record, reason='x' * 400)
        self.assertEqual(len(long_reason.note()), 250)

    def test_from_dict_reads_legacy_description_tag(self):
        record = ArchiveRecord.from_dict({'originalItemName': 'Rope', 'description': 'Used Item',
                                          'quantityUsed': 2, 'dateUsed': '2024-01-02T03:04:05'})
        self.assertEqual(record.type, str(ArchiveType.USED))
        self.assertEqual(record.date_used, datetime(2024, 1, 2, 3, 4, 5))


class TestTransactionRecord(unittest.TestCase):
    def test_dict_round_trip(self):
        record = TransactionRecord(date=datetime(2024, 3, 1, 10, 0), item_name='Rope', type='SALE',
                                   quantity=2, user='CASHIER [Tx:abc]', unit_price=1.5, total_price=3.0)
        self.assertEqual(TransactionRecord.from_dict(record.to_dict()), record)

    def test_transaction_type_from_string(self):
        self.assertEqual(TransactionType.from_string('STOCK IN'), TransactionType.STOCK_IN)
        self.assertEqual(TransactionType.from_string('stock_out'), TransactionType.STOCK_OUT)
        self.assertEqual(str(TransactionType.END_OF_DAY), 'END_OF_DAY')
        with self.assertRaises(ValueError):
            TransactionType.from_string('REFUND')


class TestUserDescriptor(unittest.TestCase):
    def test_sale_descriptor(self):
        text = build_user_descriptor('CASHIER', transaction_ref='tx-1', payment_ref='GC-99')
        self.assertEqual(text, 'CASHIER [Tx:tx-1] [ERef:GC-99]')

        parsed = parse_user_descriptor(text)
        self.assertEqual(parsed.user, 'CASHIER')
        self.assertEqual(parsed.transaction_ref, 'tx-1')
        self.assertEqual(parsed.payment_ref, 'GC-99')
        self.assertIsNone(parsed.reason)

    def test_reason_descriptor(self):
        parsed = parse_user_descriptor(build_user_descriptor('MANAGER', reason='Damaged'))
        self.assertEqual(parsed.user, 'MANAGER')
        self.assertEqual(parsed.reason, 'Damaged')

    def test_plain_user(self):
        self.assertEqual(parse_user_descriptor('SYSTEM').user, 'SYSTEM')
        self.assertEqual(parse_user_descriptor(None).user, '')


class TestCategory(unittest.TestCase):
    def test_from_plain_name(self):
        self.assertEqual(Category.from_dict(' Ink '), Category(name='Ink'))


if __name__ == '__main__':
    unittest.main()
