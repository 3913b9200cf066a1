# backend/app.py
import logging
import os
import sqlite3

import click
from flask import Blueprint, Flask, current_app, g, jsonify, request, send_from_directory
from flask.cli import with_appcontext
from flask_cors import CORS
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

import analytics
import auth
import billing
import inventory
from config import load_config
from errors import PosError
from models import db, utcnow

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)


def _body():
    # anything but a JSON object reads as empty, so field checks report it
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# -------------------------
# Health check
# -------------------------
@api.route('/health', methods=['GET'])
@api.route('/api/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok', 'timestamp': utcnow().isoformat() + 'Z'})


# -------------------------
# Auth endpoints
# -------------------------
@api.route('/api/auth/login', methods=['POST'])
def login():
    """
    JSON: { username, password }
    Returns { token, admin: { id, username } }
    """
    data = _body()
    admin = auth.authenticate(db.session, data.get('username'), data.get('password'))
    token = auth.issue_token(admin)
    return jsonify({'token': token, 'admin': admin.to_dict()})


# -------------------------
# Product endpoints
# -------------------------
@api.route('/api/products', methods=['GET'])
def get_products():
    return jsonify([p.to_dict() for p in inventory.list_products(db.session)])


@api.route('/api/products', methods=['POST'])
@auth.require_admin
def create_product():
    """JSON: { name, price, stock, image_url }"""
    data = _body()
    product = inventory.create_product(
        db.session,
        data.get('name'),
        data.get('price'),
        data.get('stock'),
        data.get('image_url'),
    )
    return jsonify(product.to_dict()), 201


@api.route('/api/products/<int:product_id>/stock', methods=['PATCH'])
@auth.require_admin
def update_product_stock(product_id):
    """JSON: { stock }. The acting admin is recorded in the stock history."""
    data = _body()
    product = inventory.update_stock(db.session, product_id, data.get('stock'), g.admin.get('username'))
    return jsonify(product.to_dict())


@api.route('/api/products/<int:product_id>', methods=['DELETE'])
@auth.require_admin
def delete_product(product_id):
    product = inventory.delete_product(db.session, product_id)
    return jsonify({'message': f"{product['name']} removed from inventory.", 'product': product})


# -------------------------
# Bill endpoints
# -------------------------
@api.route('/api/bills', methods=['GET'])
def get_bills():
    return jsonify([b.to_dict(with_items=True) for b in billing.list_bills(db.session)])


@api.route('/api/bills', methods=['POST'])
def create_bill():
    """
    JSON: { customerName, items: [ { productId, quantity } ], paymentMode, customTotal }
    Returns { bill, items }
    """
    data = _body()
    bill = billing.create_bill(
        db.session,
        customer_name=data.get('customerName'),
        items=data.get('items'),
        payment_mode=data.get('paymentMode'),
        custom_total=data.get('customTotal'),
    )
    return jsonify({'bill': bill.to_dict(), 'items': [i.to_dict() for i in bill.items]}), 201


@api.route('/api/bills/<int:bill_id>', methods=['DELETE'])
@auth.require_admin
def delete_bill(bill_id):
    bill = billing.delete_bill(db.session, bill_id)
    return jsonify({'message': 'Bill deleted successfully', 'bill': bill})


# -------------------------
# Analytics endpoints
# -------------------------
@api.route('/api/analytics/today', methods=['GET'])
def analytics_today():
    return jsonify(analytics.today_collections(db.session))


@api.route('/api/analytics/monthly', methods=['GET'])
def analytics_monthly():
    return jsonify(analytics.monthly_collections(db.session))


@api.route('/api/analytics/best-selling', methods=['GET'])
def analytics_best_selling():
    return jsonify(analytics.best_selling(db.session))


@api.route('/api/analytics/daily-sales', methods=['GET'])
def analytics_daily_sales():
    return jsonify(analytics.daily_sales(db.session, request.args.get('date')))


@api.route('/api/analytics/monthly-sales', methods=['GET'])
def analytics_monthly_sales():
    return jsonify(analytics.monthly_sales(db.session, request.args.get('month'), request.args.get('year')))


# -------------------------
# Stock update history
# -------------------------
@api.route('/api/stock-updates', methods=['GET'])
@auth.require_admin
def get_stock_updates():
    return jsonify([u.to_dict() for u in inventory.list_stock_updates(db.session)])


@api.route('/api/stock-updates/product/<int:product_id>', methods=['GET'])
@auth.require_admin
def get_product_stock_updates(product_id):
    return jsonify([u.to_dict() for u in inventory.list_stock_updates(db.session, product_id)])


# -------------------------
# Error handlers
# -------------------------
@api.app_errorhandler(PosError)
def handle_pos_error(err):
    return jsonify(err.to_dict()), err.status_code


@api.app_errorhandler(OperationalError)
def handle_operational_error(err):
    logger.exception('Database unavailable or lock wait exceeded')
    db.session.rollback()
    return jsonify({'error': 'The database is busy. Please retry.'}), 503


@api.app_errorhandler(Exception)
def handle_unexpected_error(err):
    if isinstance(err, HTTPException):
        return err
    logger.exception('Unhandled error on %s %s', request.method, request.path)
    db.session.rollback()
    return jsonify({'error': 'Internal server error'}), 500


@api.app_errorhandler(404)
def spa_fallback(err):
    """Unknown non-API paths get index.html so the SPA client router can handle them."""
    if request.path.startswith('/api/'):
        return jsonify({'error': 'not found'}), 404
    static_folder = current_app.static_folder
    if static_folder and os.path.exists(os.path.join(static_folder, 'index.html')):
        return send_from_directory(static_folder, 'index.html')
    return jsonify({'error': 'not found'}), 404


@api.route('/', methods=['GET'])
def serve_index():
    static_folder = current_app.static_folder
    if static_folder and os.path.exists(os.path.join(static_folder, 'index.html')):
        return send_from_directory(static_folder, 'index.html')
    return jsonify({'app': 'pos-backend', 'status': 'no-static-found'})


# -------------------------
# CLI
# -------------------------
@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create tables and the default admin."""
    db.create_all()
    auth.ensure_default_admin(
        db.session,
        current_app.config['DEFAULT_ADMIN_USERNAME'],
        current_app.config['DEFAULT_ADMIN_PASSWORD'],
    )
    click.echo('Database ready.')


@click.command('create-admin')
@click.argument('username')
@click.password_option()
@with_appcontext
def create_admin_command(username, password):
    """Create an admin, or reset the password of an existing one."""
    admin, created = auth.set_password(db.session, username, password)
    click.echo(f'{"Created" if created else "Updated"} admin "{admin.username}".')


def _enable_sqlite_foreign_keys(dbapi_connection, _record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def create_app(overrides=None):
    config = load_config(overrides)

    logging.basicConfig(
        level=config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    app = Flask(
        __name__,
        static_folder=config['STATIC_FOLDER'],
        static_url_path=''  # serve static files at root
    )
    app.config.update(config)

    CORS(app, resources={r"/api/*": {"origins": config['CORS_ORIGINS']}})

    db.init_app(app)
    app.register_blueprint(api)
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_admin_command)

    with app.app_context():
        event.listen(db.engine, 'connect', _enable_sqlite_foreign_keys)
        if app.config.get('AUTO_MIGRATE', True):
            db.create_all()
            auth.ensure_default_admin(
                db.session,
                app.config['DEFAULT_ADMIN_USERNAME'],
                app.config['DEFAULT_ADMIN_PASSWORD'],
            )
        if not app.config.get('JWT_SECRET'):
            logger.warning('JWT_SECRET is not set; login and admin routes will fail.')
        logger.info('Using database %s', db.engine.url.render_as_string(hide_password=True))

    return app


# -------------------------
# Run server
# -------------------------
if __name__ == "__main__":
    application = create_app()
    application.run(host="0.0.0.0", port=application.config['PORT'], debug=False)
