"""
Data Preprocessing Module
=========================

Cleaning and feature enrichment for the online retail transaction log.

Usage:
    from retail_insights.common import Preprocessor

    preprocessor = Preprocessor()
    clean = preprocessor.clean_transactions(raw)
    enriched = preprocessor.enrich_transactions(clean)
"""

import pandas as pd
import numpy as np
from typing import Optional, Dict, Any
from loguru import logger

from .config import DEFAULT_CONFIG


# Raw UCI column names -> pipeline column names
COLUMN_MAP = {
    'InvoiceNo': 'invoice_no',
    'StockCode': 'stock_code',
    'Description': 'description',
    'Quantity': 'quantity',
    'InvoiceDate': 'invoice_date',
    'UnitPrice': 'unit_price',
    'CustomerID': 'customer_id',
    'Country': 'country',
}

MISSING_DESCRIPTION = 'Missing Description'


class Preprocessor:
    """
    Preprocessor for retail transaction data.

    Provides methods for:
    - Resolving missing and malformed values
    - Filtering cancellations and non-merchandise rows
    - Deriving temporal, revenue and product-label features

    Example:
        >>> preprocessor = Preprocessor()
        >>> clean = preprocessor.clean_transactions(raw)
        >>> enriched = preprocessor.enrich_transactions(clean)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize Preprocessor.

        Args:
            config: Configuration dictionary (see common.config)
        """
        config = config if config is not None else DEFAULT_CONFIG
        data_config = config['data']

        self.guest_customer_id = data_config['guest_customer_id']
        self.invoice_length = data_config['invoice_length']
        self.date_format = data_config.get('date_format')
        self.excluded_description_pattern = data_config['excluded_description_pattern']
        logger.info("Preprocessor initialized")

    def clean_transactions(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Transform the raw transaction log into an analysis-ready table.

        Steps:
            1. Fill missing descriptions from the same stock code
            2. Replace missing customer ids with the guest sentinel
            3. Treat "?" as missing and trim text fields
            4. Enforce numeric and datetime types
            5. Remove cancellations and non-positive quantities
            6. Remove duplicate rows
            7. Exclude non-merchandise rows (postage, fees, adjustments)

        Args:
            df: Raw transaction DataFrame with the UCI column names

        Returns:
            Cleaned DataFrame with snake_case columns
        """
        missing = [col for col in COLUMN_MAP if col not in df.columns]
        if missing:
            raise ValueError(f"Raw transactions missing required columns: {missing}")

        df = df[list(COLUMN_MAP)].rename(columns=COLUMN_MAP).copy()
        original_rows = len(df)

        logger.info(f"Starting data cleaning. Rows: {original_rows}")

        # One description per stock code, first seen wins
        lookup = (
            df.dropna(subset=['description'])
            .groupby('stock_code')['description']
            .first()
        )
        df['description'] = df['description'].fillna(df['stock_code'].map(lookup))

        df['customer_id'] = self._normalize_customer_id(df['customer_id'])

        text_cols = ['invoice_no', 'stock_code', 'description', 'country']
        for col in text_cols:
            df[col] = df[col].astype('string').str.strip().replace('?', pd.NA)

        df['description'] = df['description'].fillna(MISSING_DESCRIPTION)

        df['quantity'] = pd.to_numeric(df['quantity'], errors='coerce')
        df['unit_price'] = pd.to_numeric(df['unit_price'], errors='coerce')
        df['invoice_date'] = self._parse_dates(df['invoice_date'])

        invalid = df['invoice_date'].isna() | df['quantity'].isna() | df['unit_price'].isna()
        if invalid.any():
            logger.warning(
                f"Dropping {invalid.sum()} rows with unparseable date, quantity or price"
            )
            df = df[~invalid].copy()

        df['quantity'] = df['quantity'].astype(int)

        # Cancellations carry a "C" prefix and break the 6-character invoice format
        valid_invoice = df['invoice_no'].fillna('').str.len() == self.invoice_length
        df = df[valid_invoice & (df['quantity'] > 0)]

        n_duplicates = df.duplicated().sum()
        if n_duplicates > 0:
            df = df.drop_duplicates()
            logger.info(f"Removed {n_duplicates} duplicate rows")

        non_merchandise = df['description'].str.contains(
            self.excluded_description_pattern, case=False, regex=True, na=False
        )
        df = df[~non_merchandise].reset_index(drop=True)

        for col in text_cols + ['customer_id']:
            df[col] = df[col].astype(object).where(df[col].notna(), None)

        logger.info(f"Cleaning complete. Rows: {original_rows} -> {len(df)}")
        return df

    def _normalize_customer_id(self, customer_ids: pd.Series) -> pd.Series:
        """Map missing ids to the guest sentinel and drop float suffixes."""
        ids = customer_ids.astype('string').str.strip()
        ids = ids.str.replace(r'\.0+$', '', regex=True)
        ids = ids.mask(ids.isin(['', '?', 'nan']))
        return ids.fillna(self.guest_customer_id)

    def _parse_dates(self, dates: pd.Series) -> pd.Series:
        if pd.api.types.is_datetime64_any_dtype(dates):
            return dates
        return pd.to_datetime(dates, format=self.date_format, errors='coerce')

    def enrich_transactions(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Derive temporal buckets, revenue and product labels.

        Args:
            df: Cleaned transaction DataFrame

        Returns:
            Enriched DataFrame with hour, day, week_part, month,
            revenue and product_label columns
        """
        df = df.copy()

        timestamps = df['invoice_date']
        df['hour'] = timestamps.dt.hour
        df['day'] = timestamps.dt.day_name()
        df['week_part'] = np.where(
            timestamps.dt.dayofweek.isin([5, 6]), 'Weekend', 'Weekday'
        )
        df['month'] = timestamps.dt.month_name()

        df['revenue'] = df['quantity'] * df['unit_price']

        description = df['description'].fillna('').astype(str).str.strip()
        use_code = (description == '') | (description == MISSING_DESCRIPTION)
        df['product_label'] = description.where(
            ~use_code, 'Item' + df['stock_code'].astype(str)
        )

        logger.info(f"Enriched {len(df)} transactions with {len(df.columns)} columns")
        return df

    def get_product_mapping(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Build the product label to description mapping table.

        Args:
            df: Enriched transaction DataFrame

        Returns:
            Distinct (product_label, description) pairs
        """
        mapping = df[['product_label', 'description']].drop_duplicates()
        return mapping.reset_index(drop=True)
