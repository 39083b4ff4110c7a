"""Shared fixtures: a small transaction log covering guests, one-off buyers and lapsed customers."""

import copy

import numpy as np
import pandas as pd
import pytest

from retail_insights.common import DEFAULT_CONFIG


PRODUCTS = {
    '85123A': ('WHITE HANGING HEART T-LIGHT HOLDER', 2.5),
    '71053': ('WHITE METAL LANTERN', 3.0),
    '22423': ('REGENCY CAKESTAND 3 TIER', 12.5),
}

# invoice, stock code, quantity, timestamp, customer, country
LINES = [
    ('536365', '85123A', 6, '2011-01-10 10:00', '12346', 'United Kingdom'),
    ('536366', '71053', 10, '2011-12-01 10:00', '12346', 'United Kingdom'),
    ('536367', '85123A', 2, '2011-12-09 10:00', '12347', 'Germany'),
    ('536367', '22423', 1, '2011-12-09 10:00', '12347', 'Germany'),
    ('536368', '22423', 4, '2011-03-01 09:00', '12348', 'France'),
    ('536369', '71053', 2, '2011-04-01 09:00', '12348', 'France'),
    ('536370', '85123A', 1, '2011-06-01 08:00', '12349', 'United Kingdom'),
    ('536371', '22423', 2, '2011-11-01 11:00', '12350', 'United Kingdom'),
    ('536372', '71053', 4, '2011-11-20 11:00', '12350', 'United Kingdom'),
    ('536373', '85123A', 24, '2011-12-09 12:00', 'Guest', 'United Kingdom'),
]


@pytest.fixture
def config():
    config = copy.deepcopy(DEFAULT_CONFIG)
    config['data']['date_format'] = '%m/%d/%Y %H:%M'
    return config


@pytest.fixture
def transactions():
    """Enriched transaction table as produced by the cleaning stage."""
    records = []
    for invoice, code, quantity, timestamp, customer, country in LINES:
        description, price = PRODUCTS[code]
        ts = pd.Timestamp(timestamp)
        records.append({
            'invoice_no': invoice,
            'stock_code': code,
            'description': description,
            'quantity': quantity,
            'invoice_date': ts,
            'unit_price': price,
            'customer_id': customer,
            'country': country,
            'hour': ts.hour,
            'day': ts.day_name(),
            'week_part': 'Weekend' if ts.dayofweek >= 5 else 'Weekday',
            'month': ts.month_name(),
            'revenue': quantity * price,
            'product_label': description,
        })
    return pd.DataFrame(records)


@pytest.fixture
def raw_transactions():
    """The same log in raw UCI form, with rows the cleaning stage must drop."""
    records = []
    for invoice, code, quantity, timestamp, customer, country in LINES:
        description, price = PRODUCTS[code]
        records.append({
            'InvoiceNo': invoice,
            'StockCode': code,
            'Description': description,
            'Quantity': quantity,
            'InvoiceDate': pd.Timestamp(timestamp).strftime('%m/%d/%Y %H:%M'),
            'UnitPrice': price,
            'CustomerID': None if customer == 'Guest' else customer,
            'Country': country,
        })

    raw = pd.DataFrame(records)

    # Description recoverable from another line of the same stock code
    raw.loc[8, 'Description'] = np.nan

    junk = pd.DataFrame([
        {'InvoiceNo': 'C536374', 'StockCode': '85123A', 'Description': 'WHITE HANGING HEART T-LIGHT HOLDER',
         'Quantity': -2, 'InvoiceDate': '12/02/2011 10:00', 'UnitPrice': 2.5,
         'CustomerID': '12346', 'Country': 'United Kingdom'},
        {'InvoiceNo': '536375', 'StockCode': 'POST', 'Description': 'POSTAGE',
         'Quantity': 1, 'InvoiceDate': '03/01/2011 09:00', 'UnitPrice': 18.0,
         'CustomerID': '12348', 'Country': 'France'},
        {'InvoiceNo': '536376', 'StockCode': '71053', 'Description': 'WHITE METAL LANTERN',
         'Quantity': 3, 'InvoiceDate': 'not a date', 'UnitPrice': 3.0,
         'CustomerID': '12350', 'Country': 'United Kingdom'},
    ])
    duplicate = raw.iloc[[0]]

    return pd.concat([raw, junk, duplicate], ignore_index=True)
