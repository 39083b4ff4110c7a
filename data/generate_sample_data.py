#!/usr/bin/env python3
"""
Sample Data Generator
=====================

Generates a synthetic transaction log in the shape of the UCI Online
Retail dataset for trying out the pipeline.

Usage:
    python data/generate_sample_data.py

This will create:
    - sample_online_retail.csv: Raw invoice lines, including guest
      purchases, cancellations and non-merchandise rows
"""

import pandas as pd
import numpy as np
from datetime import timedelta
import os

# Set random seed for reproducibility
np.random.seed(42)

PRODUCTS = [
    ('85123A', 'WHITE HANGING HEART T-LIGHT HOLDER', 2.55),
    ('71053', 'WHITE METAL LANTERN', 3.39),
    ('84406B', 'CREAM CUPID HEARTS COAT HANGER', 2.75),
    ('22423', 'REGENCY CAKESTAND 3 TIER', 12.75),
    ('85099B', 'JUMBO BAG RED RETROSPOT', 1.95),
    ('47566', 'PARTY BUNTING', 4.95),
    ('84879', 'ASSORTED COLOUR BIRD ORNAMENT', 1.69),
    ('22720', 'SET OF 3 CAKE TINS PANTRY DESIGN', 4.95),
    ('21212', 'PACK OF 72 RETROSPOT CAKE CASES', 0.55),
    ('23203', 'JUMBO BAG VINTAGE DOILY', 2.08),
]
NON_MERCHANDISE = [('POST', 'POSTAGE', 18.0), ('M', 'Manual', 1.0)]

COUNTRIES = ['United Kingdom', 'Germany', 'France', 'EIRE', 'Spain', 'Netherlands']
COUNTRY_WEIGHTS = [0.82, 0.06, 0.05, 0.03, 0.02, 0.02]


def generate_online_retail_data(
    n_customers: int = 500,
    n_invoices: int = 4000,
    start_date: str = '2010-12-01',
    end_date: str = '2011-12-09',
    guest_rate: float = 0.15,
    cancellation_rate: float = 0.02
) -> pd.DataFrame:
    """
    Generate synthetic invoice lines.

    Creates customers with varying:
    - Purchase frequency (how recent their invoices cluster)
    - Basket size
    - Home country

    Args:
        n_customers: Number of identified customers
        n_invoices: Number of invoices
        start_date: First invoice date
        end_date: Last invoice date
        guest_rate: Share of invoices without a customer id
        cancellation_rate: Share of invoices that are cancellations

    Returns:
        DataFrame with the raw UCI columns
    """
    start = pd.Timestamp(start_date)
    end = pd.Timestamp(end_date)
    date_range = (end - start).days

    # Customer profiles
    customer_profiles = {}
    for i in range(n_customers):
        customer_profiles[12346 + i] = {
            'activity': np.random.choice(['high', 'medium', 'low'], p=[0.2, 0.5, 0.3]),
            'basket_size': np.random.randint(1, 8),
            'country': np.random.choice(COUNTRIES, p=COUNTRY_WEIGHTS)
        }
    customer_ids = list(customer_profiles)

    records = []
    invoice_no = 536365

    for _ in range(n_invoices):
        is_guest = np.random.random() < guest_rate
        customer_id = np.random.choice(customer_ids)
        profile = customer_profiles[customer_id]

        # More active customers buy more recently
        scale = {'high': 30, 'medium': 90, 'low': 180}[profile['activity']]
        days_ago = min(int(np.random.exponential(scale)), date_range)
        invoice_date = end - timedelta(
            days=days_ago,
            hours=int(np.random.randint(0, 10)),
            minutes=int(np.random.randint(0, 60))
        )

        is_cancelled = np.random.random() < cancellation_rate
        invoice = f"C{invoice_no}" if is_cancelled else str(invoice_no)

        n_lines = np.random.randint(1, profile['basket_size'] + 1)
        for idx in np.random.choice(len(PRODUCTS), size=n_lines, replace=False):
            stock_code, description, price = PRODUCTS[idx]
            quantity = int(np.random.choice([1, 2, 3, 4, 6, 12, 24], p=[0.2, 0.2, 0.1, 0.1, 0.15, 0.15, 0.1]))
            records.append({
                'InvoiceNo': invoice,
                'StockCode': stock_code,
                'Description': description,
                'Quantity': -quantity if is_cancelled else quantity,
                'InvoiceDate': invoice_date.strftime('%m/%d/%Y %H:%M'),
                'UnitPrice': price,
                'CustomerID': None if is_guest else float(customer_id),
                'Country': profile['country']
            })

        # Occasional postage line
        if np.random.random() < 0.05:
            stock_code, description, price = NON_MERCHANDISE[np.random.randint(0, 2)]
            records.append({
                'InvoiceNo': invoice,
                'StockCode': stock_code,
                'Description': description,
                'Quantity': 1,
                'InvoiceDate': invoice_date.strftime('%m/%d/%Y %H:%M'),
                'UnitPrice': price,
                'CustomerID': None if is_guest else float(customer_id),
                'Country': profile['country']
            })

        invoice_no += 1

    df = pd.DataFrame(records)

    # Blank out some descriptions; cleaning recovers them from the stock code
    missing = np.random.random(len(df)) < 0.01
    df.loc[missing, 'Description'] = np.nan

    return df


def main():
    """Generate the sample dataset."""
    script_dir = os.path.dirname(os.path.abspath(__file__))

    print("Generating sample online retail data...")
    df = generate_online_retail_data()
    path = os.path.join(script_dir, 'sample_online_retail.csv')
    df.to_csv(path, index=False)

    print(f"  Saved {len(df)} invoice lines to {path}")
    print(f"  Invoices: {df['InvoiceNo'].nunique()}, customers: {df['CustomerID'].nunique()}")


if __name__ == '__main__':
    main()
