from datetime import date, datetime, timedelta

from babel.numbers import format_decimal

WHOLESALER = 'Wholesaler'
VSE = 'Retailer (VSE)'


def format_price(price, symbol='GH₵', locale='en'):
    amount = format_decimal(price or 0, format='#,##0.00', locale=locale)
    return f'{symbol} {amount}'


def get_stock_level(quantity):
    if quantity > 50:
        return 'high'
    if quantity >= 20:
        return 'medium'
    return 'low'


def get_stock_status(quantity, low_threshold=20):
    if quantity <= 0:
        return 'out'
    if quantity < low_threshold:
        return 'low'
    return 'good'


def unit_price(retail_price, wholesale_price, customer_type=None):
    """Wholesalers pay the wholesale price when one is set, everyone else retail."""
    if customer_type == WHOLESALER:
        return wholesale_price or retail_price or 0
    return retail_price or 0


def available_products(products, selected_ids=(), predicate=None):
    """Products a picker may still offer: not yet selected and matching predicate."""
    selected = set(selected_ids)
    return [
        p for p in products
        if p.id not in selected and (predicate is None or predicate(p))
    ]


def required_empties(lines):
    """Sum of quantities of returnable lines; lines are (returnable, quantity) pairs."""
    return sum(qty for returnable, qty in lines if returnable)


def project_empties_balance(balance, has_mou, required):
    projected = (balance or 0) - required
    return {
        'current': balance or 0,
        'required': required,
        'projected': projected,
        'insufficient': not has_mou and projected < 0,
    }


def loadout_balance(given, sold, returned):
    return given - sold - returned


# inventory_logs.type -> summary column
LOG_BUCKETS = {
    'opening_stock': 'opening_stock',
    'supplier_receipt': 'total_received',
    'vse_loadout': 'vses_sent',
    'vse_return': 'vses_returned',
    'retail_sale': 'total_sold',
    'wholesale_sale': 'total_sold',
    'breakage': 'breakages',
    'promo_out': 'promo_stock',
    'promo_reimbursement': 'reimbursement',
    'stock_adjustment': 'adjustments',
}


def summarize_inventory(products, logs, opening_balances=None):
    """Per-product daily movement summary.

    `logs` are the day's inventory log rows in chronological order and
    `opening_balances` maps product id to the stock held before the day.
    Outgoing movements are reported as positive numbers; the running
    balance uses the signed quantities. Products without activity on the
    day are left out.
    """
    opening_balances = opening_balances or {}
    summary = []
    for product in products:
        product_logs = [log for log in logs if log.product_id == product.id]
        if not product_logs:
            continue
        running = opening_balances.get(product.id, 0)
        row = {
            'product': product,
            'opening_stock': running,
            'total_received': 0,
            'vses_sent': 0,
            'vses_returned': 0,
            'total_sold': 0,
            'breakages': 0,
            'promo_stock': 0,
            'reimbursement': 0,
            'adjustments': 0,
            'transactions': [],
        }
        for log in product_logs:
            running += log.quantity
            bucket = LOG_BUCKETS.get(log.type)
            if bucket == 'adjustments':
                row[bucket] += log.quantity
            elif bucket:
                row[bucket] += abs(log.quantity)
            row['transactions'].append({
                'id': log.id,
                'time': log.created_at,
                'description': log.description or log.type.replace('_', ' '),
                'type': log.type,
                'quantity': log.quantity,
                'balance': running,
            })
        row['closing_stock'] = running
        summary.append(row)
    return summary


def crate_stats(full_quantities, empty_quantities, customer_balances):
    full = sum(full_quantities)
    empty = sum(empty_quantities)
    in_trade = sum(-b for b in customer_balances if b < 0)
    return {
        'total': full + empty,
        'empty': empty,
        'full': full,
        'in_trade': in_trade,
        'owned': full + empty + in_trade,
    }


def parse_date(value, default=None):
    if not value:
        return default
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        return default


def date_range_args(args, days=30):
    """Read start/end query args, defaulting to the last `days` days."""
    today = date.today()
    start = parse_date(args.get('start'), today - timedelta(days=days - 1))
    end = parse_date(args.get('end'), today)
    if start > end:
        start, end = end, start
    return start, end
