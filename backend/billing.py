# backend/billing.py
"""
Bill creation and removal.

create_bill is the only place where several rows must change together:
the bill, every line item and every product's stock either all land or
none do.
"""
import logging
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import selectinload

from errors import ConflictError, NotFoundError, PosError, ValidationError
from inventory import MAX_INTEGER, as_whole_number, is_number
from models import PAYMENT_MODES, Bill, BillItem, Product

logger = logging.getLogger(__name__)

ANONYMOUS_CUSTOMER = 'Anonymous Customer'
MAX_TOTAL = Decimal('9999999999.99')


def normalize_payment_mode(value):
    # unknown modes are not an error; the sale is recorded as cash
    return value if value in PAYMENT_MODES else 'cash'


def _parse_items(items):
    if not isinstance(items, list) or not items:
        raise ValidationError('At least one item is required.')

    parsed = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError('Each item must have a valid productId and quantity.')
        product_id = as_whole_number(item.get('productId', item.get('product_id')))
        quantity = as_whole_number(item.get('quantity'))
        if not product_id or product_id < 1 or quantity is None or quantity <= 0:
            raise ValidationError('Each item must have a valid productId and quantity.')
        parsed.append((product_id, quantity))
    return parsed


def _parse_total(custom_total):
    if custom_total is None:
        return None
    if not is_number(custom_total) or custom_total < 0:
        raise ValidationError('Custom total must be a non-negative number.')
    if custom_total > MAX_TOTAL:
        raise ValidationError('Custom total is too large.')
    return Decimal(str(custom_total))


def create_bill(session, customer_name=None, items=None, payment_mode=None, custom_total=None):
    """
    Sell items against stock in a single transaction.

    Each product row is locked (SELECT ... FOR UPDATE) before its stock is
    checked, so concurrent bills for the same product are serialized and
    cannot both take the last unit. Any failure rolls back the bill, its
    line items and every stock decrement made so far.
    """
    lines = _parse_items(items)
    override = _parse_total(custom_total)
    customer_name = customer_name.strip() if isinstance(customer_name, str) else ''
    payment_mode = normalize_payment_mode(payment_mode)

    try:
        bill = Bill(customer_name=customer_name or ANONYMOUS_CUSTOMER, total=0, payment_mode=payment_mode)
        session.add(bill)
        session.flush()

        total = Decimal('0')
        for product_id, quantity in lines:
            product = session.scalars(
                select(Product)
                .where(Product.id == product_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).first()
            if product is None:
                raise NotFoundError('Product not found')
            if product.stock < quantity:
                raise ConflictError(f'Insufficient stock for {product.name}. Only {product.stock} left.')

            product.stock = product.stock - quantity
            session.add(BillItem(bill_id=bill.id, product_id=product.id, quantity=quantity, price=product.price))
            total += product.price * quantity

        bill.total = override if override is not None else total
        session.commit()
    except PosError as e:
        session.rollback()
        logger.warning('Failed to create bill: %s', e.message)
        raise
    except Exception:
        session.rollback()
        raise

    logger.info('Created bill %s total=%s mode=%s', bill.id, bill.total, bill.payment_mode)
    return bill


def list_bills(session):
    return session.scalars(
        select(Bill)
        .options(selectinload(Bill.items))
        .order_by(Bill.created_at.desc(), Bill.id.desc())
    ).all()


def delete_bill(session, bill_id):
    """Remove a bill and its line items. Stock sold by the bill is not returned."""
    bill = session.get(Bill, bill_id) if abs(bill_id) <= MAX_INTEGER else None
    if bill is None:
        raise NotFoundError('Bill not found')

    snapshot = {'id': bill.id, 'customer_name': bill.customer_name, 'total': float(bill.total)}
    try:
        session.execute(delete(BillItem).where(BillItem.bill_id == bill.id))
        session.expire(bill, ['items'])
        session.delete(bill)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info('Deleted bill %s', snapshot['id'])
    return snapshot
