"""
Tests for point-of-sale checkout.
"""
import threading
import unittest

from inventory_ledger.entities import InventoryItem, parse_user_descriptor
from inventory_ledger.exceptions import BackendUnavailableError, CheckoutError
from inventory_ledger.services.checkout_service import CartLine, CheckoutService, Payment
from inventory_ledger.tests.helpers import HeldSnapshotStore, LedgerFixture, a4_paper, make_backend_mock


class CheckoutTestCase(unittest.TestCase):
    def setUp(self):
        self.backend = make_backend_mock()
        self.fixture = LedgerFixture(backend=self.backend)
        self.ledger = self.fixture.ledger
        self.checkout = CheckoutService(self.ledger, self.fixture.archive, self.backend)

        self.paper = self.ledger.add_item(a4_paper())
        self.mugs = self.ledger.add_item(InventoryItem(name='Ceramic Mugs', category='Heat Press', quantity=5,
                                                       min_stock_level=2, unit_price=3.5))

    def tearDown(self):
        self.checkout.shutdown()
        self.fixture.close()

    def sales(self):
        return self.fixture.transaction_log.find_by_type('SALE')


class TestCheckoutValidation(CheckoutTestCase):
    def assert_rejected(self, cart, payment, code):
        with self.assertRaises(CheckoutError) as ctx:
            self.checkout.checkout(cart, payment)
        self.assertEqual(ctx.exception.code, code)
        self.assertEqual(self.paper.quantity, 500)
        self.assertEqual(self.sales(), [])

    def test_empty_cart(self):
        self.assert_rejected([], Payment('Cash', tendered=10), 'EMPTY_CART')

    def test_tendered_below_total(self):
        self.assert_rejected([CartLine('A4 Paper', 0.10, 100)], Payment('Cash', tendered=5), 'INSUFFICIENT_PAYMENT')

    def test_ewallet_needs_reference(self):
        self.assert_rejected([CartLine('A4 Paper', 0.10, 1)], Payment('E-wallet', reference='  '),
                             'PAYMENT_REFERENCE')

    def test_unknown_method(self):
        self.assert_rejected([CartLine('A4 Paper', 0.10, 1)], Payment('Cheque'), 'PAYMENT_METHOD')

    def test_invalid_quantity(self):
        self.assert_rejected([CartLine('A4 Paper', 0.10, 0)], Payment('Cash', tendered=1), 'INVALID_LINE')


class TestCheckout(CheckoutTestCase):
    def test_cash_sale(self):
        cart = [CartLine('A4 Paper', 0.10, 100), CartLine('Ceramic Mugs', 3.5, 2)]

        result = self.checkout.checkout(cart, Payment('cash', tendered=20), user='cashier')

        self.assertTrue(result.success)
        self.assertAlmostEqual(result.total, 17.0)
        self.assertAlmostEqual(result.change, 3.0)
        self.assertEqual(self.paper.quantity, 400)
        self.assertEqual(self.mugs.quantity, 3)

        sales = self.sales()
        self.assertEqual(len(sales), 2)
        descriptor = parse_user_descriptor(sales[0].user)
        self.assertEqual(descriptor.user, 'CASHIER')
        self.assertEqual(descriptor.transaction_ref, result.transaction_ref)
        self.assertIsNone(descriptor.payment_ref)
        self.assertAlmostEqual(sales[1].total_price, 7.0)

        archived = self.fixture.archive.records()
        self.assertEqual([r.reason for r in archived], ['Sold via POS', 'Sold via POS'])

        self.assertEqual(result.persistence.result(), 2)
        calls = self.backend.insert_pos_sale_with_transaction.call_args_list
        self.assertEqual([c[0][2] for c in calls], ['A4 Paper', 'Ceramic Mugs'])
        self.assertTrue(all(c[0][0] == result.transaction_ref for c in calls))
        self.assertAlmostEqual(calls[0][1]['sale_total'], 17.0)
        self.assertEqual(calls[0][1]['payment_method'], 'Cash')

    def test_ewallet_sale(self):
        result = self.checkout.checkout([CartLine('Ceramic Mugs', 3.5, 1)],
                                        Payment('E-wallet', reference='GC-1234'))

        self.assertTrue(result.success)
        self.assertEqual((result.tendered, result.change), (3.5, 0.0))
        descriptor = parse_user_descriptor(self.sales()[0].user)
        self.assertEqual(descriptor.payment_ref, 'GC-1234')
        self.assertEqual(descriptor.user, 'CASHIER')
        result.persistence.result()
        self.assertEqual(self.backend.insert_pos_sale_with_transaction.call_args[1]['payment_ref'], 'GC-1234')

    def test_partial_failure_keeps_applied_lines(self):
        cart = [CartLine('A4 Paper', 0.10, 10), CartLine('Ceramic Mugs', 3.5, 6), CartLine('A4 Paper', 0.10, 5)]

        result = self.checkout.checkout(cart, Payment('Cash', tendered=100))

        self.assertFalse(result.success)
        self.assertEqual(result.applied_lines, [cart[0]])
        self.assertEqual(result.failed_line, cart[1])
        self.assertEqual(self.paper.quantity, 490)
        self.assertEqual(self.mugs.quantity, 5)
        self.assertEqual(len(self.sales()), 1)
        self.assertEqual(result.persistence.result(), 1)
        self.assertAlmostEqual(self.backend.insert_pos_sale_with_transaction.call_args[1]['sale_total'], 1.0)

    def test_missing_item_stops_checkout(self):
        result = self.checkout.checkout([CartLine('Ghost', 1.0, 1)], Payment('Cash', tendered=5))

        self.assertFalse(result.success)
        self.assertIn('Ghost', result.error)
        self.assertIsNone(result.persistence)
        self.backend.insert_pos_sale_with_transaction.assert_not_called()

    def test_backend_outage_still_saves_local_files(self):
        self.backend.insert_pos_sale_with_transaction.side_effect = BackendUnavailableError()

        result = self.checkout.checkout([CartLine('Ceramic Mugs', 3.5, 1)], Payment('Cash', tendered=5))

        self.assertEqual(result.persistence.result(), 0)
        reopened = self.fixture.reopen()
        try:
            reopened.ledger.load_data()
            self.assertEqual(reopened.ledger.find_item_by_name('Ceramic Mugs').quantity, 4)
        finally:
            reopened.close()

    def test_checkout_after_shutdown(self):
        self.checkout.shutdown()
        with self.assertRaises(CheckoutError):
            self.checkout.checkout([CartLine('Ceramic Mugs', 3.5, 1)], Payment('Cash', tendered=5))


class TestBackgroundSaveOrdering(CheckoutTestCase):
    def test_sale_save_does_not_overwrite_newer_stock(self):
        store = HeldSnapshotStore(self.fixture.snapshot.path)
        self.ledger.snapshot = store
        worker_go = threading.Event()

        def slow_insert(*args, **kwargs):
            worker_go.wait(5)
            return True

        self.backend.insert_pos_sale_with_transaction.side_effect = slow_insert
        result = self.checkout.checkout([CartLine('Ceramic Mugs', 3.5, 1)], Payment('Cash', tendered=5))
        self.assertTrue(result.success)

        # Park the worker inside its snapshot write, then stock in on this side
        store.hold_next_save()
        worker_go.set()
        self.assertTrue(store.entered.wait(5))
        stock_in = threading.Thread(target=self.ledger.add_stock, args=(self.mugs, 100))
        stock_in.start()
        stock_in.join(0.2)
        store.release.set()
        stock_in.join()
        result.persistence.result()

        self.assertEqual(self.mugs.quantity, 104)
        reopened = self.fixture.reopen()
        try:
            reopened.ledger.load_data()
            self.assertEqual(reopened.ledger.find_item_by_name('Ceramic Mugs').quantity, 104)
        finally:
            reopened.close()


if __name__ == '__main__':
    unittest.main()
