"""Sale totals: subtotal, discount, tax and installment interest."""
from decimal import Decimal
from typing import Any, Dict, List

from pos_ledger.exceptions import ValidationError
from pos_ledger.utils.money import ZERO, money, to_decimal


def normalize_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Validate cart lines and coerce their numbers.

    Each line needs a positive integer quantity and a positive unit price;
    product_id and a per-line discount are optional here.

    Raises:
        ValidationError: empty cart or a bad line
    """
    if not items:
        raise ValidationError('Sale must have at least one item')

    lines = []
    for index, item in enumerate(items, start=1):
        try:
            quantity = to_decimal(item.get('quantity'), 'quantity')
            unit_price = to_decimal(item.get('unit_price'), 'unit_price')
            discount = to_decimal(item.get('discount') or 0, 'discount')
        except ValueError as e:
            raise ValidationError(f'Item {index}: {e}')

        if quantity <= 0 or quantity != quantity.to_integral_value():
            raise ValidationError(f'Item {index}: quantity must be a positive whole number')
        if unit_price <= 0:
            raise ValidationError(f'Item {index}: unit price must be greater than 0')
        if discount < 0:
            raise ValidationError(f'Item {index}: discount cannot be negative')

        lines.append({
            'product_id': item.get('product_id'),
            'quantity': int(quantity),
            'unit_price': money(unit_price),
            'discount': money(discount),
            'subtotal': money(quantity * unit_price - discount),
        })
    return lines


def compute_totals(items: List[Dict[str, Any]], discount=0, tax=0) -> Dict[str, Decimal]:
    """
    Compute sale totals.

    Args:
        items: cart lines with quantity and unit_price
        discount: absolute amount taken off the subtotal
        tax: percentage (0-100) applied after the discount

    Returns:
        dict with subtotal, discount (the amount actually taken off), tax
        (the tax amount) and total. Every field is rounded to 2 decimals and
        total == subtotal - discount + tax holds exactly.
    """
    lines = normalize_items(items)

    try:
        discount = to_decimal(discount if discount is not None else 0, 'discount')
        tax = to_decimal(tax if tax is not None else 0, 'tax')
    except ValueError as e:
        raise ValidationError(str(e))

    if discount < 0:
        raise ValidationError('Discount cannot be negative')
    if tax < 0 or tax > 100:
        raise ValidationError('Tax must be between 0 and 100')

    subtotal = money(sum(Decimal(line['quantity']) * line['unit_price'] for line in lines))
    applied_discount = min(money(discount), subtotal)
    after_discount = subtotal - applied_discount
    tax_amount = money(after_discount * tax / Decimal('100'))

    return {
        'subtotal': subtotal,
        'discount': applied_discount,
        'tax': tax_amount,
        'total': after_discount + tax_amount,
    }


def apply_interest(total, interest_rate) -> Dict[str, Decimal]:
    """Interest on an installment-bearing sale: total * rate / 100."""
    try:
        interest_rate = to_decimal(interest_rate if interest_rate is not None else 0, 'interest_rate')
    except ValueError as e:
        raise ValidationError(str(e))
    if interest_rate < 0:
        raise ValidationError('Interest rate cannot be negative')

    total = money(total)
    if interest_rate == 0:
        return {'interest_amount': ZERO, 'final_total': total}

    interest_amount = money(total * interest_rate / Decimal('100'))
    return {'interest_amount': interest_amount, 'final_total': total + interest_amount}
