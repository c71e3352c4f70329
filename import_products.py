"""Bulk-load products from the supplier price-list spreadsheet.

The sheet starts with a two-row split header; data columns are, in order,
SKU NAME, Returnable, CODE NAME, WHOLESALE and RETAIL.

    python import_products.py products.csv
"""
import sys

import pandas as pd

from logging_config import get_logger, setup_logging

logger = get_logger(__name__)

COLUMNS = ['sku_name', 'returnable', 'code_name', 'wholesale_price', 'retail_price']


def parse_price(value):
    text = str(value).replace(',', '').strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_products_csv(path):
    """Rows of product fields ready for Product(**row); rows without a SKU name are skipped."""
    df = pd.read_csv(path, header=None, skiprows=2, dtype=str, keep_default_na=False)
    df = df.iloc[:, :len(COLUMNS)]
    df.columns = COLUMNS[:len(df.columns)]
    products = []
    for record in df.to_dict('records'):
        sku_name = str(record.get('sku_name', '')).strip()
        if not sku_name:
            continue
        products.append({
            'sku_name': sku_name,
            'returnable': str(record.get('returnable', '')).strip().lower() == 'returnable',
            'code_name': str(record.get('code_name', '')).strip() or None,
            'wholesale_price': parse_price(record.get('wholesale_price', '')),
            'retail_price': parse_price(record.get('retail_price', '')),
        })
    return products


def import_products(path, app=None):
    from app import create_app
    from models import db
    from models.product import Product
    from sqlalchemy.exc import SQLAlchemyError

    app = app or create_app()
    rows = parse_products_csv(path)
    with app.app_context():
        try:
            db.session.add_all([Product(**row) for row in rows])
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Product import from %s failed', path)
            raise
    logger.info('Imported %s products from %s', len(rows), path)
    return len(rows)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print('Usage: python import_products.py <products.csv>')
        return 1
    setup_logging()
    count = import_products(argv[0])
    print(f'Successfully imported {count} products')
    return 0


if __name__ == '__main__':
    sys.exit(main())
