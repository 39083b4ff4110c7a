"""
Business Performance Metrics Module
===================================

Stateless group-by reports over the enriched transaction table.

Usage:
    from retail_insights.business_metrics import BusinessMetrics

    metrics = BusinessMetrics(top_n=10)
    tables = metrics.compute_all(transactions)
    top_products = metrics.product_performance(transactions, 'total_revenue')
"""

import pandas as pd
from typing import Dict, List, Optional
from loguru import logger

from ..common.aggregation import summarize, rank_table, top_n_per_group
from ..common.data_loader import DataLoader


PRODUCT_KEYS = ['stock_code', 'product_label']
TEMPORAL_DIMENSIONS = ['hour', 'day', 'week_part', 'month']

TEMPORAL_METRICS = [
    'total_quantity', 'average_quantity', 'total_revenue',
    'average_revenue', 'total_orders', 'total_order_lines'
]
COUNTRY_METRICS = TEMPORAL_METRICS
CROSS_METRICS = [
    'total_quantity', 'average_quantity', 'total_revenue',
    'average_revenue', 'total_order_lines'
]


class BusinessMetrics:
    """
    Product, temporal, geographic and cross-dimensional reporting.

    Every report is a pure reduction of the enriched transaction table;
    averages are rounded to 2 decimals and ties keep group-key order.

    Example:
        >>> metrics = BusinessMetrics()
        >>> counts = metrics.foundational_metrics(transactions)
        >>> leaders = metrics.country_product_leaders(transactions, 'total_revenue')
    """

    def __init__(self, top_n: int = 10, cross_top_n: int = 2):
        """
        Initialize BusinessMetrics.

        Args:
            top_n: Rows kept in product and country rankings
            cross_top_n: Products kept per dimension value in cross reports
        """
        self.top_n = top_n
        self.cross_top_n = cross_top_n
        logger.info("BusinessMetrics initialized")

    def foundational_metrics(self, df: pd.DataFrame) -> Dict[str, int]:
        """
        Structural size of the cleaned dataset.

        Returns:
            Dictionary with total_orders, total_order_lines and total_unique_products
        """
        DataLoader.require_columns(df, ['invoice_no', 'stock_code'], table_name='transactions')
        return {
            'total_orders': int(df['invoice_no'].nunique()),
            'total_order_lines': int(len(df)),
            'total_unique_products': int(df['stock_code'].nunique()),
        }

    def product_performance(
        self,
        df: pd.DataFrame,
        metric: str,
        ascending: bool = False
    ) -> pd.DataFrame:
        """
        Rank products by a metric.

        Args:
            df: Enriched transaction table
            metric: Metric name (see common.aggregation.METRICS)
            ascending: True for the bottom of the ranking

        Returns:
            top_n products with stock_code, product_label and the metric
        """
        table = summarize(df, PRODUCT_KEYS, metric)
        return rank_table(table, metric, ascending=ascending, n=self.top_n)

    def temporal_performance(
        self,
        df: pd.DataFrame,
        dimension: str,
        metric: str
    ) -> pd.DataFrame:
        """
        Metric for every value of a temporal dimension, highest first.

        Args:
            df: Enriched transaction table
            dimension: One of hour, day, week_part, month
            metric: Metric name

        Returns:
            DataFrame with the dimension and the metric
        """
        if dimension not in TEMPORAL_DIMENSIONS:
            raise ValueError(f"Unknown temporal dimension: {dimension}")

        table = summarize(df, [dimension], metric)
        return rank_table(table, metric)

    def country_performance(self, df: pd.DataFrame, metric: str) -> pd.DataFrame:
        """Top countries by a metric."""
        table = summarize(df, ['country'], metric)
        return rank_table(table, metric, n=self.top_n)

    def dimension_product_leaders(
        self,
        df: pd.DataFrame,
        dimension: str,
        metric: str,
        values: Optional[List] = None
    ) -> pd.DataFrame:
        """
        Leading products for each value of a dimension.

        Args:
            df: Enriched transaction table
            dimension: Grouping column (hour, day, week_part, month, country)
            metric: Metric name
            values: Restrict to these dimension values

        Returns:
            DataFrame with dimension, stock_code, product_label and the metric
        """
        if values is not None:
            df = df[df[dimension].isin(values)]

        table = summarize(df, [dimension] + PRODUCT_KEYS, metric)
        return top_n_per_group(table, dimension, metric, self.cross_top_n)

    def country_product_leaders(self, df: pd.DataFrame, metric: str) -> pd.DataFrame:
        """Leading products within the top countries of the same metric."""
        top_countries = self.country_performance(df, metric)['country'].tolist()
        return self.dimension_product_leaders(df, 'country', metric, values=top_countries)

    def compute_all(self, df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
        """
        Run every report.

        Args:
            df: Enriched transaction table

        Returns:
            Dictionary of table name -> DataFrame
        """
        results: Dict[str, pd.DataFrame] = {}

        foundational = self.foundational_metrics(df)
        results['foundational_metrics'] = pd.DataFrame(
            [{'metric': k, 'value': v} for k, v in foundational.items()]
        )

        product_reports = [
            ('product_top_total_quantity', 'total_quantity', False),
            ('product_bottom_total_quantity', 'total_quantity', True),
            ('product_top_average_quantity', 'average_quantity', False),
            ('product_top_total_revenue', 'total_revenue', False),
            ('product_top_average_revenue', 'average_revenue', False),
            ('product_top_total_order_lines', 'total_order_lines', False),
        ]
        for name, metric, ascending in product_reports:
            results[name] = self.product_performance(df, metric, ascending=ascending)

        for dimension in TEMPORAL_DIMENSIONS:
            for metric in TEMPORAL_METRICS:
                results[f'temporal_{dimension}_{metric}'] = self.temporal_performance(
                    df, dimension, metric
                )

        for metric in COUNTRY_METRICS:
            results[f'country_top_{metric}'] = self.country_performance(df, metric)

        for dimension in TEMPORAL_DIMENSIONS:
            for metric in CROSS_METRICS:
                results[f'cross_product_{dimension}_{metric}'] = self.dimension_product_leaders(
                    df, dimension, metric
                )
        for metric in CROSS_METRICS:
            results[f'cross_country_product_{metric}'] = self.country_product_leaders(df, metric)

        logger.info(f"Computed {len(results)} business metric tables")
        return results
