# backend/inventory.py
import logging
import math
from decimal import Decimal

from sqlalchemy import func, select, text

from errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from models import BillItem, Product, StockUpdate

logger = logging.getLogger(__name__)

STOCK_HISTORY_LIMIT = 100

# INTEGER columns (ids, stock, quantities) are 32-bit
MAX_INTEGER = 2 ** 31 - 1
MAX_PRICE = Decimal('99999999.99')


def is_number(value):
    # bool is an int subclass but never a valid quantity or price
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return False


def as_whole_number(value):
    """Return value as an int if it is a whole number that fits an INTEGER column, else None."""
    if not is_number(value) or int(value) != value:
        return None
    value = int(value)
    if abs(value) > MAX_INTEGER:
        return None
    return value


def list_products(session):
    return session.scalars(select(Product).order_by(Product.name.asc(), Product.id.asc())).all()


def get_product(session, product_id):
    product = session.get(Product, product_id) if abs(product_id) <= MAX_INTEGER else None
    if product is None:
        raise NotFoundError('Product not found')
    return product


def create_product(session, name, price, stock, image_url=None):
    name = (name or '').strip() if isinstance(name, str) else ''
    stock_value = as_whole_number(stock)
    if not name or not is_number(price) or stock_value is None:
        raise ValidationError('Name, price, and stock are required numeric values.')
    if price < 0 or stock_value < 0:
        raise ValidationError('Price and stock must be non-negative.')
    if price > MAX_PRICE:
        raise ValidationError('Price is too large.')

    product = Product(
        name=name,
        price=Decimal(str(price)),
        stock=stock_value,
        image_url=image_url or None,
    )
    session.add(product)
    session.commit()
    logger.info('Created product %s (%s)', product.id, product.name)
    return product


def update_stock(session, product_id, stock, actor):
    """
    Overwrite a product's stock and append an audit record.

    Not locked: the read and the write are two plain statements, so a
    concurrent sale between them can make old_stock stale. Admin corrections
    are rare enough that this is accepted.
    """
    new_stock = as_whole_number(stock)
    if new_stock is None or new_stock < 0:
        raise ValidationError('Stock must be a non-negative number')
    if not actor:
        raise AuthenticationError('An authenticated admin is required to update stock.')

    product = get_product(session, product_id)
    old_stock = product.stock
    product.stock = new_stock
    session.add(StockUpdate(
        product_id=product.id,
        old_stock=old_stock,
        new_stock=new_stock,
        updated_by=actor,
    ))
    session.commit()
    logger.info('Stock for product %s changed %s -> %s by %s', product.id, old_stock, new_stock, actor)
    return product


def delete_product(session, product_id):
    product = get_product(session, product_id)

    used = session.scalar(
        select(func.count(BillItem.id)).where(BillItem.product_id == product.id)
    )
    if used:
        raise ConflictError(
            'Cannot delete product that has been used in bills. This product has sales history.'
        )

    snapshot = product.to_dict()
    session.delete(product)
    session.flush()

    remaining = session.scalar(select(func.count(Product.id)))
    if remaining == 0:
        _reset_product_ids(session)
    session.commit()
    logger.info('Deleted product %s (%s)', snapshot['id'], snapshot['name'])
    return snapshot


def _reset_product_ids(session):
    # SQLite reuses max(id)+1 already, so an empty table starts over at 1
    if session.get_bind().dialect.name == 'postgresql':
        session.execute(text('ALTER SEQUENCE products_id_seq RESTART WITH 1'))


def list_stock_updates(session, product_id=None, limit=STOCK_HISTORY_LIMIT):
    query = select(StockUpdate).order_by(StockUpdate.created_at.desc(), StockUpdate.id.desc())
    if product_id is not None:
        query = query.where(StockUpdate.product_id == product_id)
    elif limit:
        query = query.limit(limit)
    return session.scalars(query).all()
