from typing import Dict

from inventory_ledger.entities import InventoryItem
from inventory_ledger.exceptions import ValidationError

def validate_item(item: InventoryItem) -> Dict[str, str]:
    """Validate an inventory item.

    Args:
        item: Item to validate

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if not item.name or not item.name.strip():
        errors['name'] = 'Item name is required'

    if item.quantity is None or item.quantity < 0:
        errors['quantity'] = 'Quantity cannot be negative'

    if item.min_stock_level is None or item.min_stock_level < 0:
        errors['min_stock_level'] = 'Minimum stock level cannot be negative'

    if item.unit_price is None or item.unit_price < 0:
        errors['unit_price'] = 'Unit price cannot be negative'

    return errors

def validate_amount(amount: int, available: int = None) -> Dict[str, str]:
    """Validate a stock movement amount.

    Args:
        amount: Units to move
        available: Units on hand, when the movement removes stock

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        errors['amount'] = 'Amount must be a positive whole number'
    elif available is not None and amount > available:
        errors['amount'] = f'Only {available} units available'

    return errors

def ensure_valid_item(item: InventoryItem) -> None:
    """Raise ``ValidationError`` listing every problem with ``item``."""
    errors = validate_item(item)
    if errors:
        raise ValidationError(f"Invalid item '{item.name}'", details=errors)
