from datetime import datetime, time, timedelta

from flask import Blueprint, render_template, jsonify, request
from flask_login import login_required

from models.sale import Order
from routes.auth import section_required
from utils import date_range_args

reports_bp = Blueprint('reports', __name__, url_prefix='/dashboard/reports')


def approved_sales_by_day(start, end):
    orders = (
        Order.query
        .filter(
            Order.status == 'approved',
            Order.deleted_at.is_(None),
            Order.date_time >= datetime.combine(start, time.min),
            Order.date_time <= datetime.combine(end, time.max),
        )
        .order_by(Order.date_time)
        .all()
    )
    sales_by_day = {}
    for i in range((end - start).days + 1):
        day = start + timedelta(days=i)
        sales_by_day[day.strftime('%Y-%m-%d')] = 0
    for order in orders:
        day = order.date_time.date().strftime('%Y-%m-%d')
        sales_by_day[day] += order.total_amount
    return sales_by_day


@reports_bp.route('/sales')
@login_required
@section_required('reports')
def sales_report():
    start, end = date_range_args(request.args)
    sales_by_day = approved_sales_by_day(start, end)
    return render_template('reports/sales.html', title='Sales Report', sales_by_day=sales_by_day,
                           total=sum(sales_by_day.values()), start=start, end=end)


@reports_bp.route('/api/sales_last_30_days')
@login_required
@section_required('reports')
def api_sales_last_30_days():
    today = datetime.utcnow().date()
    sales_by_day = approved_sales_by_day(today - timedelta(days=29), today)
    return jsonify({'labels': list(sales_by_day.keys()), 'data': list(sales_by_day.values())})
