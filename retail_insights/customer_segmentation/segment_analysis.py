"""
Segment Analysis Module
=======================

Segment-level intelligence derived from the scored-customer table:
population, revenue and order distribution, product and country
leaders per segment, lifetime value, churn and average order value.

Usage:
    from retail_insights.customer_segmentation import SegmentAnalyzer

    analyzer = SegmentAnalyzer()
    tables = analyzer.analyze_segments(scored, transactions)
    churn = analyzer.segment_churn_rate(transactions, scored)
"""

import pandas as pd
import numpy as np
from typing import Optional, List, Dict, Any
from datetime import datetime
from scipy import stats
from loguru import logger

from ..common.aggregation import summarize, top_n_per_group, rank_table
from ..common.data_loader import DataLoader


TRANSACTION_COLUMNS = ['customer_id', 'invoice_no', 'invoice_date', 'revenue']

PRODUCT_METRICS = [
    'total_quantity', 'average_quantity', 'total_revenue',
    'average_revenue', 'total_orders'
]
COUNTRY_METRICS = [
    'total_customers', 'total_orders', 'total_revenue',
    'average_revenue', 'total_quantity', 'average_quantity'
]


class SegmentAnalyzer:
    """
    Analysis toolkit for RFM customer segments.

    All methods are pure reductions over the scored-customer table and,
    where needed, the enriched transaction table. Dates that anchor churn
    are computed once from the transactions and passed explicitly.

    Example:
        >>> analyzer = SegmentAnalyzer(churn_days=180)
        >>> tables = analyzer.analyze_segments(scored, transactions)
        >>> print(tables['segment_lifetime_value'])
    """

    def __init__(
        self,
        guest_customer_id: str = 'Guest',
        churn_days: int = 180,
        top_n: int = 2
    ):
        """
        Initialize SegmentAnalyzer.

        Args:
            guest_customer_id: Placeholder id of unidentified purchasers
            churn_days: Inactivity horizon after which a customer is churned
            top_n: Rows kept per segment in product/country breakdowns
        """
        self.guest_customer_id = guest_customer_id
        self.churn_days = churn_days
        self.top_n = top_n
        logger.info("SegmentAnalyzer initialized")

    def analyze_segments(
        self,
        scored: pd.DataFrame,
        transactions: pd.DataFrame,
        analysis_date: Optional[datetime] = None
    ) -> Dict[str, pd.DataFrame]:
        """
        Compute every segment summary table.

        Args:
            scored: Scored-customer table with a segment column
            transactions: Enriched transaction table
            analysis_date: Latest timestamp of the dataset (computed if None)

        Returns:
            Dictionary of table name -> DataFrame
        """
        if analysis_date is None:
            analysis_date = self._analysis_date(transactions)

        results = {
            'segment_customer_distribution': self.segment_customer_distribution(scored),
            'segment_revenue_distribution': self.segment_revenue_distribution(scored),
            'segment_order_distribution': self.segment_order_distribution(scored),
        }

        segment_data = self.attach_segments(scored, transactions)
        for metric in PRODUCT_METRICS:
            results[f'segment_product_{metric}'] = self.segment_product_leaders(
                segment_data, metric
            )
        for metric in COUNTRY_METRICS:
            results[f'segment_country_{metric}'] = self.segment_country_leaders(
                segment_data, metric
            )

        results['segment_lifetime_value'] = self.segment_lifetime_value(transactions, scored)
        results['segment_churn_rate'] = self.segment_churn_rate(
            transactions, scored, analysis_date=analysis_date
        )
        results['segment_order_value'] = self.segment_order_value(transactions, scored)

        logger.info(f"Computed {len(results)} segment tables")
        return results

    def _analysis_date(self, transactions: pd.DataFrame) -> pd.Timestamp:
        DataLoader.require_columns(transactions, ['invoice_date'], table_name='transactions')
        if len(transactions) == 0:
            raise ValueError("Transaction table is empty")
        return pd.to_datetime(transactions['invoice_date']).max()

    def _known_customers(self, transactions: pd.DataFrame) -> pd.DataFrame:
        DataLoader.require_columns(transactions, TRANSACTION_COLUMNS, table_name='transactions')
        known = transactions[transactions['customer_id'] != self.guest_customer_id].copy()
        known['invoice_date'] = pd.to_datetime(known['invoice_date'])
        return known

    @staticmethod
    def _segments(scored: pd.DataFrame) -> pd.DataFrame:
        DataLoader.require_columns(scored, ['customer_id', 'segment'], table_name='scored customers')
        return scored[['customer_id', 'segment']]

    # ------------------------------------------------------------------
    # Structural metrics
    # ------------------------------------------------------------------

    def segment_customer_distribution(self, scored: pd.DataFrame) -> pd.DataFrame:
        """Customers per segment, largest first."""
        DataLoader.require_columns(scored, ['segment'], table_name='scored customers')
        sizes = scored.groupby('segment').size().rename('customer_count').reset_index()
        return rank_table(sizes, 'customer_count')

    def segment_revenue_distribution(self, scored: pd.DataFrame) -> pd.DataFrame:
        """Total and per-customer average monetary value per segment."""
        DataLoader.require_columns(scored, ['segment', 'monetary'], table_name='scored customers')
        revenue = scored.groupby('segment')['monetary'].agg(
            total_revenue='sum', average_revenue='mean'
        ).reset_index()
        revenue['average_revenue'] = revenue['average_revenue'].round(2)
        return rank_table(revenue, 'total_revenue')

    def segment_order_distribution(self, scored: pd.DataFrame) -> pd.DataFrame:
        """Total distinct orders placed by each segment."""
        DataLoader.require_columns(scored, ['segment', 'frequency'], table_name='scored customers')
        orders = scored.groupby('segment')['frequency'].sum()
        orders = orders.rename('total_order_frequency').reset_index()
        return rank_table(orders, 'total_order_frequency')

    # ------------------------------------------------------------------
    # Segment x product / country leaders
    # ------------------------------------------------------------------

    def attach_segments(
        self,
        scored: pd.DataFrame,
        transactions: pd.DataFrame
    ) -> pd.DataFrame:
        """Join segment labels back onto the transaction lines of scored customers."""
        DataLoader.require_columns(transactions, ['customer_id'], table_name='transactions')
        return self._segments(scored).merge(transactions, on='customer_id', how='inner')

    def segment_product_leaders(
        self,
        segment_data: pd.DataFrame,
        metric: str,
        n: Optional[int] = None
    ) -> pd.DataFrame:
        """
        Top products per segment by a metric.

        Args:
            segment_data: Transactions with a segment column (see attach_segments)
            metric: One of PRODUCT_METRICS
            n: Products kept per segment (default: top_n)

        Returns:
            DataFrame with segment, stock_code, product_label and the metric
        """
        table = summarize(
            segment_data, ['segment', 'stock_code', 'product_label'], metric
        )
        return top_n_per_group(table, 'segment', metric, self.top_n if n is None else n)

    def segment_country_leaders(
        self,
        segment_data: pd.DataFrame,
        metric: str,
        n: Optional[int] = None
    ) -> pd.DataFrame:
        """
        Top countries per segment by a metric.

        Args:
            segment_data: Transactions with a segment column (see attach_segments)
            metric: One of COUNTRY_METRICS
            n: Countries kept per segment (default: top_n)

        Returns:
            DataFrame with segment, country and the metric
        """
        table = summarize(segment_data, ['segment', 'country'], metric)
        return top_n_per_group(table, 'segment', metric, self.top_n if n is None else n)

    # ------------------------------------------------------------------
    # Evaluation metrics
    # ------------------------------------------------------------------

    def calculate_customer_lifetime_value(self, transactions: pd.DataFrame) -> pd.DataFrame:
        """
        Estimate lifetime value per identified customer.

        CLV = average order value x purchase frequency x average lifespan,
        where purchase frequency is orders per active day and the average
        lifespan is one dataset-wide mean of active days. Active days count
        whole calendar days, so customers whose purchases all fall on one
        day (zero active days) have no defined frequency: their
        purchase_frequency and clv are NaN and they are left out of the
        lifespan mean.

        Args:
            transactions: Enriched transaction table

        Returns:
            DataFrame with one row per customer
        """
        known = self._known_customers(transactions)

        customers = known.groupby('customer_id', sort=True).agg(
            total_revenue=('revenue', 'sum'),
            orders=('invoice_no', 'nunique'),
            first_purchase=('invoice_date', 'min'),
            last_purchase=('invoice_date', 'max')
        ).reset_index()

        customers['avg_order_value'] = customers['total_revenue'] / customers['orders']
        customers['active_days'] = (
            customers['last_purchase'].dt.normalize() - customers['first_purchase'].dt.normalize()
        ).dt.days

        lifespan = customers['active_days'].where(customers['active_days'] > 0)
        customers['purchase_frequency'] = customers['orders'] / lifespan

        avg_lifespan = lifespan.mean()
        if pd.isna(avg_lifespan):
            logger.warning("No customer has more than one purchase date; CLV is undefined")

        customers['avg_customer_lifespan'] = avg_lifespan
        customers['clv'] = (
            customers['avg_order_value'] * customers['purchase_frequency'] * avg_lifespan
        )

        n_missing = customers['clv'].isna().sum()
        logger.info(
            f"Estimated CLV for {len(customers) - n_missing} customers "
            f"({n_missing} single-day customers without CLV)"
        )
        return customers

    def segment_lifetime_value(
        self,
        transactions: pd.DataFrame,
        scored: pd.DataFrame
    ) -> pd.DataFrame:
        """
        Average CLV per segment, highest first.

        Missing CLV values are excluded before averaging; segments with no
        valid CLV are left out of the result.
        """
        clv = self.calculate_customer_lifetime_value(transactions)
        clv = clv.merge(self._segments(scored), on='customer_id', how='inner')
        clv = clv.dropna(subset=['clv'])

        result = clv.groupby('segment')['clv'].mean().round(2)
        result = result.rename('average_clv').reset_index()
        return rank_table(result, 'average_clv')

    def calculate_churn_status(
        self,
        transactions: pd.DataFrame,
        analysis_date: Optional[datetime] = None
    ) -> pd.DataFrame:
        """
        Classify each identified customer as Active or Churned.

        A customer is churned when the last purchase is on or before
        analysis_date minus churn_days.

        Args:
            transactions: Enriched transaction table
            analysis_date: Latest timestamp of the dataset (computed if None)

        Returns:
            DataFrame with customer_id, last_purchase and status
        """
        if analysis_date is None:
            analysis_date = self._analysis_date(transactions)
        cutoff_date = pd.Timestamp(analysis_date) - pd.Timedelta(days=self.churn_days)

        known = self._known_customers(transactions)
        status = known.groupby('customer_id', sort=True)['invoice_date'].max()
        status = status.rename('last_purchase').reset_index()
        status['status'] = np.where(
            status['last_purchase'] <= cutoff_date, 'Churned', 'Active'
        )

        logger.info(
            f"Churn cutoff {cutoff_date}: "
            f"{(status['status'] == 'Churned').sum()} of {len(status)} customers churned"
        )
        return status

    def segment_churn_rate(
        self,
        transactions: pd.DataFrame,
        scored: pd.DataFrame,
        analysis_date: Optional[datetime] = None
    ) -> pd.DataFrame:
        """
        Share of Active and Churned customers within each segment.

        Returns:
            DataFrame with segment, status, customer_count and percentage
            (rounded to 2 decimals), highest percentage first
        """
        status = self.calculate_churn_status(transactions, analysis_date=analysis_date)
        status = status.merge(self._segments(scored), on='customer_id', how='inner')

        counts = status.groupby(['segment', 'status']).size().rename('customer_count')
        counts = counts.reset_index()
        segment_totals = counts.groupby('segment')['customer_count'].transform('sum')
        counts['percentage'] = (100 * counts['customer_count'] / segment_totals).round(2)

        return rank_table(counts, 'percentage')

    def segment_order_value(
        self,
        transactions: pd.DataFrame,
        scored: pd.DataFrame
    ) -> pd.DataFrame:
        """
        Revenue per order within each segment.

        Order totals are summed per invoice first, so the result weights
        every order equally rather than every customer.

        Returns:
            DataFrame with segment, total_revenue, total_orders and
            average_order_value, highest first
        """
        known = self._known_customers(transactions)
        lines = known.merge(self._segments(scored), on='customer_id', how='inner')

        orders = lines.groupby(['segment', 'invoice_no'])['revenue'].sum()
        orders = orders.rename('order_total').reset_index()

        aov = orders.groupby('segment').agg(
            total_revenue=('order_total', 'sum'),
            total_orders=('order_total', 'size')
        ).reset_index()
        aov['average_order_value'] = (aov['total_revenue'] / aov['total_orders']).round(2)

        return rank_table(aov, 'average_order_value')

    # ------------------------------------------------------------------
    # Differentiation
    # ------------------------------------------------------------------

    def compare_segments(
        self,
        scored: pd.DataFrame,
        value_columns: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Kruskal-Wallis H-test of each metric across segments.

        Args:
            scored: Scored-customer table
            value_columns: Metrics to test (default: recency, frequency, monetary)

        Returns:
            Dictionary of metric -> test statistics
        """
        if value_columns is None:
            value_columns = ['recency', 'frequency', 'monetary']

        test_results = {}

        for col in value_columns:
            if col not in scored.columns:
                continue

            groups = [
                values.dropna().values
                for _, values in scored.groupby('segment')[col]
            ]
            groups = [g for g in groups if len(g) > 0]

            if len(groups) < 2:
                continue

            try:
                h_stat, h_pvalue = stats.kruskal(*groups)
            except ValueError as e:
                logger.warning(f"Statistical test failed for {col}: {e}")
                continue

            test_results[col] = {
                'kruskal_h_statistic': float(h_stat),
                'kruskal_p_value': float(h_pvalue),
                'significant': bool(h_pvalue < 0.05)
            }

        return test_results

    def generate_summary(self, scored: pd.DataFrame) -> str:
        """Text summary of segment sizes and spend."""
        n_customers = len(scored)

        summary_parts = [
            "Segment Analysis Summary",
            "=" * 40,
            f"Total customers: {n_customers:,}",
            f"Number of segments: {scored['segment'].nunique()}",
            "",
            "Segment Distribution:"
        ]

        sizes = self.segment_customer_distribution(scored)
        for row in sizes.itertuples(index=False):
            pct = row.customer_count / n_customers * 100 if n_customers else 0
            summary_parts.append(f"  {row.segment}: {row.customer_count:,} ({pct:.1f}%)")

        return "\n".join(summary_parts)
