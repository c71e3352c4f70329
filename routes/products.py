from flask import Blueprint, render_template, redirect, url_for, flash, request, jsonify
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from forms.product_forms import ProductForm
from logging_config import get_logger
from models import db
from models.product import Product
from routes.auth import section_required, editor_required

logger = get_logger(__name__)

products_bp = Blueprint('products', __name__, url_prefix='/dashboard/warehouse/products')


@products_bp.route('/')
@login_required
@section_required('warehouse')
def list_products():
    q = request.args.get('q', '').strip()
    products = Product.active()
    if q:
        products = products.filter((Product.sku_name.ilike(f'%{q}%')) | (Product.code_name.ilike(f'%{q}%')))
    return render_template('products/list.html', title='Products', products=products.all(), q=q)


def _fill(product, form):
    product.sku_name = form.sku_name.data.strip()
    product.code_name = (form.code_name.data or '').strip() or None
    product.wholesale_price = form.wholesale_price.data or 0
    product.retail_price = form.retail_price.data or 0
    product.returnable = form.returnable.data


@products_bp.route('/add', methods=['GET', 'POST'])
@login_required
@section_required('warehouse')
@editor_required
def add_product():
    form = ProductForm()
    if form.validate_on_submit():
        product = Product()
        _fill(product, form)
        try:
            db.session.add(product)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not add product %s', form.sku_name.data)
            flash('Could not add product', 'danger')
        else:
            logger.info('Product %s added by %s', product.sku_name, current_user.email)
            flash('Product added successfully', 'success')
            return redirect(url_for('products.list_products'))
    return render_template('products/form.html', title='Add Product', form=form)


@products_bp.route('/edit/<int:product_id>', methods=['GET', 'POST'])
@login_required
@section_required('warehouse')
@editor_required
def edit_product(product_id):
    product = db.get_or_404(Product, product_id)
    form = ProductForm(obj=product)
    if form.validate_on_submit():
        _fill(product, form)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not update product %s', product_id)
            flash('Could not update product', 'danger')
        else:
            flash('Product updated successfully', 'success')
            return redirect(url_for('products.list_products'))
    return render_template('products/form.html', title='Edit Product', form=form, product=product)


@products_bp.route('/delete/<int:product_id>', methods=['POST'])
@login_required
@section_required('warehouse')
@editor_required
def delete_product(product_id):
    product = db.get_or_404(Product, product_id)
    try:
        product.soft_delete()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not delete product %s', product_id)
        flash('Could not delete product', 'danger')
    else:
        logger.info('Product %s deleted by %s', product.sku_name, current_user.email)
        flash('Product deleted successfully', 'success')
    return redirect(url_for('products.list_products'))


@products_bp.route('/api/list')
@login_required
@section_required('warehouse')
def api_list_products():
    return jsonify([p.to_dict() for p in Product.active().all()])
