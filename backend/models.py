# backend/models.py
from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

PAYMENT_MODES = ('cash', 'online')


def utcnow():
    """Naive UTC timestamp; every created_at column is stored this way."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _money(value):
    return float(value) if value is not None else None


class Admin(db.Model):
    __tablename__ = 'admins'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        # never expose the hash
        return {
            'id': self.id,
            'username': self.username,
        }


class Product(db.Model):
    __tablename__ = 'products'
    __table_args__ = (
        db.CheckConstraint('price >= 0', name='ck_products_price'),
        db.CheckConstraint('stock >= 0', name='ck_products_stock'),
    )
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.Text, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    image_url = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'price': _money(self.price),
            'stock': self.stock,
            'image_url': self.image_url,
        }


class Bill(db.Model):
    __tablename__ = 'bills'
    __table_args__ = (
        db.CheckConstraint("payment_mode IN ('cash', 'online')", name='ck_bills_payment_mode'),
    )
    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.Text, nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    payment_mode = db.Column(db.String(16), default='cash')
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    items = db.relationship('BillItem', backref='bill', lazy=True,
                            cascade='all, delete-orphan', passive_deletes=True,
                            order_by='BillItem.id')

    def to_dict(self, with_items=False):
        data = {
            'id': self.id,
            'customer_name': self.customer_name,
            'total': _money(self.total),
            'payment_mode': self.payment_mode,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if with_items:
            data['items'] = [i.to_dict() for i in self.items]
        return data


class BillItem(db.Model):
    __tablename__ = 'bill_items'
    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='ck_bill_items_quantity'),
        db.CheckConstraint('price >= 0', name='ck_bill_items_price'),
    )
    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey('bills.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)  # unit price at time of sale
    product = db.relationship('Product', lazy='joined')

    def to_dict(self):
        return {
            'id': self.id,
            'billId': self.bill_id,
            'productId': self.product_id,
            'quantity': self.quantity,
            'price': _money(self.price),
            'productName': self.product.name if self.product else None,
        }


class StockUpdate(db.Model):
    __tablename__ = 'stock_updates'
    id = db.Column(db.Integer, primary_key=True)
    # history outlives the product it describes
    product_id = db.Column(db.Integer, db.ForeignKey('products.id', ondelete='SET NULL'), index=True)
    old_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    updated_by = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    product = db.relationship('Product', lazy='joined')

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'old_stock': self.old_stock,
            'new_stock': self.new_stock,
            'updated_by': self.updated_by,
            'created_at': self.created_at.isoformat(),
        }
