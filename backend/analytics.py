# backend/analytics.py
import calendar
from datetime import date, datetime, time, timedelta

from sqlalchemy import case, distinct, func, select

from errors import ValidationError
from models import Bill, BillItem, Product, utcnow

BEST_SELLING_LIMIT = 10


def _period(start, end):
    return (datetime.combine(start, time.min), datetime.combine(end, time.min))


def _day(day):
    return _period(day, day + timedelta(days=1))


def _month(year, month):
    last = calendar.monthrange(year, month)[1]
    return _period(date(year, month, 1), date(year, month, last) + timedelta(days=1))


def _collections(session, start, end):
    total = func.coalesce(func.sum(Bill.total), 0)
    cash = func.coalesce(func.sum(case((Bill.payment_mode == 'cash', Bill.total), else_=0)), 0)
    online = func.coalesce(func.sum(case((Bill.payment_mode == 'online', Bill.total), else_=0)), 0)
    row = session.execute(
        select(total, func.count(Bill.id), cash, online)
        .where(Bill.created_at >= start, Bill.created_at < end)
    ).one()
    return {
        'total_amount': float(row[0] or 0),
        'total_bills': int(row[1] or 0),
        'cash_amount': float(row[2] or 0),
        'online_amount': float(row[3] or 0),
    }


def _products_sold(session, start, end):
    quantity = func.sum(BillItem.quantity).label('quantity_sold')
    revenue = func.sum(BillItem.quantity * BillItem.price).label('revenue')
    rows = session.execute(
        select(Product.id, Product.name, quantity, revenue)
        .select_from(Bill)
        .join(BillItem, BillItem.bill_id == Bill.id)
        .join(Product, Product.id == BillItem.product_id)
        .where(Bill.created_at >= start, Bill.created_at < end)
        .group_by(Product.id, Product.name)
        .order_by(quantity.desc(), Product.id.asc())
    ).all()
    return [
        {'id': r.id, 'name': r.name, 'quantity_sold': int(r.quantity_sold), 'revenue': float(r.revenue)}
        for r in rows
    ]


def today_collections(session, today=None):
    return _collections(session, *_day(today or utcnow().date()))


def monthly_collections(session, today=None):
    today = today or utcnow().date()
    return _collections(session, *_month(today.year, today.month))


def best_selling(session, limit=BEST_SELLING_LIMIT):
    total_quantity = func.coalesce(func.sum(BillItem.quantity), 0)
    rows = session.execute(
        select(
            Product.id,
            Product.name,
            Product.image_url,
            Product.price,
            total_quantity.label('total_quantity'),
            func.coalesce(func.sum(BillItem.quantity * BillItem.price), 0).label('total_revenue'),
            func.count(distinct(BillItem.bill_id)).label('times_sold'),
        )
        .outerjoin(BillItem, BillItem.product_id == Product.id)
        .group_by(Product.id, Product.name, Product.image_url, Product.price)
        .having(total_quantity > 0)
        .order_by(total_quantity.desc(), Product.id.asc())
        .limit(limit)
    ).all()
    return [
        {
            'id': r.id,
            'name': r.name,
            'image_url': r.image_url,
            'price': float(r.price),
            'total_quantity': int(r.total_quantity),
            'total_revenue': float(r.total_revenue),
            'times_sold': int(r.times_sold),
        }
        for r in rows
    ]


def parse_report_date(value):
    if value is None or value == '':
        return utcnow().date()
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError('Invalid date format. Use YYYY-MM-DD.')


def _parse_int(value):
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value.strip())
    return None


def daily_sales(session, date_string=None):
    day = parse_report_date(date_string)
    start, end = _day(day)
    return {
        'summary': _collections(session, start, end),
        'products': _products_sold(session, start, end),
        'date': day.isoformat(),
    }


def monthly_sales(session, month=None, year=None):
    today = utcnow().date()
    target_month = today.month if month in (None, '') else _parse_int(month)
    target_year = today.year if year in (None, '') else _parse_int(year)

    if target_month is None or not 1 <= target_month <= 12:
        raise ValidationError('Invalid month. Must be between 1 and 12.')
    if target_year is None or not 2000 <= target_year <= 2100:
        raise ValidationError('Invalid year. Must be between 2000 and 2100.')

    start, end = _month(target_year, target_month)
    return {
        'summary': _collections(session, start, end),
        'products': _products_sold(session, start, end),
        'month': target_month,
        'year': target_year,
    }
