import os
from datetime import datetime, time

from flask import Flask, render_template, redirect, url_for, send_from_directory
from flask_login import LoginManager, login_required, current_user
from flask_wtf.csrf import CSRFProtect

from config import Config
from logging_config import setup_logging, get_logger
from models import db
from models.customer import Customer
from models.product import Product
from models.sale import Order
from models.user import Profile
from models.warehouse_order import WarehouseOrder
from utils import format_price

# Initialize extensions
login_manager = LoginManager()
csrf = CSRFProtect()

logger = get_logger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    setup_logging(app.config['LOG_LEVEL'], app.config.get('LOG_DIR'))

    db.init_app(app)
    login_manager.init_app(app)
    csrf.init_app(app)
    login_manager.login_view = 'auth.login'
    login_manager.login_message = 'Please sign in to access this page'
    login_manager.login_message_category = 'warning'

    @login_manager.user_loader
    def load_user(user_id):
        user = db.session.get(Profile, int(user_id))
        if user is None or not user.is_active:
            return None
        return user

    # Register Blueprints
    from routes.auth import auth_bp, visible_sections
    app.register_blueprint(auth_bp)
    from routes.customers import customers_bp
    app.register_blueprint(customers_bp)
    from routes.crates import crates_bp
    app.register_blueprint(crates_bp)
    from routes.products import products_bp
    app.register_blueprint(products_bp)
    from routes.warehouse import warehouse_bp
    app.register_blueprint(warehouse_bp)
    from routes.pos import pos_bp
    app.register_blueprint(pos_bp)
    from routes.admin import admin_bp
    app.register_blueprint(admin_bp)
    from routes.reports import reports_bp
    app.register_blueprint(reports_bp)

    @app.route('/')
    def index():
        return redirect(url_for('dashboard'))

    @app.route('/dashboard')
    @login_required
    def dashboard():
        today = datetime.utcnow().date()
        threshold = app.config.get('LOW_STOCK_THRESHOLD', 20)
        products = Product.active().all()
        todays_orders = Order.query.filter(
            Order.status == 'approved',
            Order.date_time >= datetime.combine(today, time.min),
            Order.date_time <= datetime.combine(today, time.max),
        ).all()
        return render_template(
            'dashboard.html',
            title='Overview',
            customers_count=Customer.active().count(),
            products_count=len(products),
            pending_orders_count=Order.query.filter_by(status='pending').count(),
            pending_warehouse_count=WarehouseOrder.query.filter_by(status='pending').count(),
            todays_sales=sum(o.total_amount for o in todays_orders),
            low_stock_products=[p for p in products if p.quantity < threshold],
        )

    @app.route('/uploads/<path:filename>')
    @login_required
    def uploaded_file(filename):
        return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

    @app.context_processor
    def inject_menu():
        return {'sections': visible_sections(current_user)}

    @app.template_filter('money')
    def money(value):
        return format_price(value, app.config['CURRENCY_SYMBOL'], app.config['BABEL_DEFAULT_LOCALE'])

    @app.errorhandler(404)
    def not_found(error):
        return render_template('errors/404.html', title='Not Found'), 404

    @app.errorhandler(413)
    def too_large(error):
        return render_template('errors/413.html', title='File Too Large'), 413

    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
    logger.info('Application created with %s', config_class.__name__)
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
