"""
RFM Feature Engineering Module
==============================

Calculates Recency, Frequency, and Monetary value per identified
customer, converts them to quintile scores and assigns a behavioral
segment from the combined score.

Usage:
    from retail_insights.customer_segmentation import RFMFeatureEngineer

    engineer = RFMFeatureEngineer()
    scored = engineer.score_customers(transactions)

Scoring rules:
    * Recency is measured in (fractional) days from each customer's last
      purchase to the analysis date, the latest timestamp in the whole
      table. Guest rows count towards that date but are not scored.
    * Each metric is split into ``n_bins`` groups with ntile semantics:
      group sizes differ by at most one and lower groups take the
      overflow. Ties are broken by customer id, ascending.
    * With fewer customers than bins, each customer gets its own rank
      (scores 1..N) and a warning is logged.
"""

import pandas as pd
import numpy as np
from typing import Optional, List, Tuple, Sequence
from datetime import datetime
from loguru import logger

from ..common.data_loader import DataLoader


SEGMENT_THRESHOLDS: List[Tuple[int, str]] = [
    (13, 'Champions'),
    (10, 'Loyal Customers'),
    (7, 'Potential Loyalists'),
    (4, 'At Risk'),
]
DEFAULT_SEGMENT = 'Lost'

SCORED_COLUMNS = [
    'customer_id', 'recency', 'frequency', 'monetary',
    'r_score', 'f_score', 'm_score', 'rfm_score', 'segment'
]


def ntile(values: pd.Series, n: int) -> pd.Series:
    """
    Assign each value to one of n ordered buckets of near-equal size.

    Bucket sizes are floor(N/n) or ceil(N/n), with the lower buckets
    holding the larger share. Equal values are ranked in the order they
    appear in ``values``.

    Args:
        values: Values to bucket
        n: Number of buckets

    Returns:
        Integer bucket (1..n) per value, aligned to ``values``
    """
    if n < 1:
        raise ValueError(f"Number of buckets must be positive, got {n}")

    size = len(values)
    if size == 0:
        return pd.Series([], index=values.index, dtype=int)

    position = values.rank(method='first').to_numpy(dtype=int)

    n_larger = size % n
    larger_size = -(-size // n)
    smaller_size = max(size // n, 1)
    larger_threshold = larger_size * n_larger

    buckets = np.where(
        position <= larger_threshold,
        (position + larger_size - 1) // larger_size,
        (position - larger_threshold + smaller_size - 1) // smaller_size + n_larger
    )
    return pd.Series(buckets.astype(int), index=values.index)


class RFMFeatureEngineer:
    """
    RFM scoring and rule-based segmentation for customer analytics.

    Example:
        >>> engineer = RFMFeatureEngineer()
        >>> rfm = engineer.calculate_rfm(transactions)
        >>> scored = engineer.calculate_rfm_scores(rfm)
        >>> segmented = engineer.segment_customers(scored)
    """

    def __init__(
        self,
        recency_bins: int = 5,
        frequency_bins: int = 5,
        monetary_bins: int = 5,
        guest_customer_id: str = 'Guest',
        segment_thresholds: Optional[Sequence[Tuple[int, str]]] = None,
        default_segment: str = DEFAULT_SEGMENT
    ):
        """
        Initialize RFM Feature Engineer.

        Args:
            recency_bins: Number of bins for recency scoring
            frequency_bins: Number of bins for frequency scoring
            monetary_bins: Number of bins for monetary scoring
            guest_customer_id: Placeholder id of unidentified purchasers
            segment_thresholds: Ordered (minimum score, label) pairs, first match wins
            default_segment: Label for scores below every threshold
        """
        self.recency_bins = recency_bins
        self.frequency_bins = frequency_bins
        self.monetary_bins = monetary_bins
        self.guest_customer_id = guest_customer_id

        thresholds = segment_thresholds if segment_thresholds is not None else SEGMENT_THRESHOLDS
        self.segment_thresholds = sorted(
            [(int(score), str(label)) for score, label in thresholds],
            key=lambda pair: pair[0],
            reverse=True
        )
        self.default_segment = default_segment

        logger.info("RFMFeatureEngineer initialized")

    @staticmethod
    def get_analysis_date(
        df: pd.DataFrame,
        date_column: str = 'invoice_date'
    ) -> pd.Timestamp:
        """
        Reference date for recency: the latest timestamp in the table.

        Args:
            df: Full transaction table, guests included
            date_column: Column name for transaction timestamp

        Returns:
            Latest transaction timestamp
        """
        DataLoader.require_columns(df, [date_column], table_name='transactions')
        if len(df) == 0:
            raise ValueError("Cannot determine analysis date from an empty table")

        analysis_date = pd.to_datetime(df[date_column]).max()
        if pd.isna(analysis_date):
            raise ValueError(f"Column '{date_column}' holds no valid timestamps")
        return analysis_date

    def calculate_rfm(
        self,
        df: pd.DataFrame,
        customer_id: str = 'customer_id',
        invoice_column: str = 'invoice_no',
        date_column: str = 'invoice_date',
        amount_column: str = 'revenue',
        analysis_date: Optional[datetime] = None
    ) -> pd.DataFrame:
        """
        Calculate RFM metrics for each identified customer.

        Args:
            df: Enriched transaction DataFrame
            customer_id: Column name for customer ID
            invoice_column: Column name for invoice ID
            date_column: Column name for transaction timestamp
            amount_column: Column name for line revenue
            analysis_date: Reference date (default: latest timestamp in df)

        Returns:
            DataFrame with customer_id, recency (days), frequency and
            monetary columns, one row per customer, sorted by customer id

        Raises:
            ValueError: On missing columns, invalid rows or no identified customers
        """
        DataLoader.require_columns(
            df, [customer_id, invoice_column, date_column, amount_column],
            table_name='transactions'
        )

        df = df[[customer_id, invoice_column, date_column, amount_column]].copy()
        df[date_column] = pd.to_datetime(df[date_column])

        self._check_rows(df, customer_id, invoice_column, date_column, amount_column)

        if analysis_date is None:
            analysis_date = self.get_analysis_date(df, date_column)
        analysis_date = pd.Timestamp(analysis_date)

        known = df[df[customer_id] != self.guest_customer_id]
        if known.empty:
            raise ValueError(
                f"No identified customers to score: every row has customer id "
                f"'{self.guest_customer_id}'"
            )

        rfm = known.groupby(customer_id, sort=True).agg(
            last_purchase=(date_column, 'max'),
            frequency=(invoice_column, 'nunique'),
            monetary=(amount_column, 'sum')
        )
        rfm['recency'] = (analysis_date - rfm['last_purchase']) / pd.Timedelta(days=1)

        future = rfm.index[rfm['recency'] < 0]
        if len(future) > 0:
            raise ValueError(
                f"Analysis date {analysis_date} precedes the last purchase of "
                f"customers {list(future[:5])}"
            )

        rfm = rfm.reset_index()[[customer_id, 'recency', 'frequency', 'monetary']]
        rfm = rfm.rename(columns={customer_id: 'customer_id'})

        logger.info(f"Calculated RFM for {len(rfm)} customers (analysis date {analysis_date})")
        return rfm

    def _check_rows(
        self,
        df: pd.DataFrame,
        customer_id: str,
        invoice_column: str,
        date_column: str,
        amount_column: str
    ) -> None:
        """Reject rows the cleaning stage should have removed."""
        checks = {
            'missing customer id': df[customer_id].isna(),
            'missing timestamp': df[date_column].isna(),
            'missing revenue': df[amount_column].isna(),
            'non-finite revenue': ~np.isfinite(df[amount_column].astype(float).fillna(0)),
        }
        for problem, mask in checks.items():
            if mask.any():
                invoices = df.loc[mask, invoice_column].astype(str).unique()[:5]
                raise ValueError(
                    f"{mask.sum()} transaction rows with {problem} "
                    f"(invoices {list(invoices)})"
                )

    def calculate_rfm_scores(self, rfm: pd.DataFrame) -> pd.DataFrame:
        """
        Calculate quintile scores (1-5) and the combined RFM score.

        Args:
            rfm: DataFrame with RFM metrics

        Returns:
            DataFrame with r_score, f_score, m_score and rfm_score added
        """
        DataLoader.require_columns(
            rfm, ['customer_id', 'recency', 'frequency', 'monetary'], table_name='rfm'
        )

        # Tie-break order is customer id
        rfm = rfm.sort_values('customer_id', kind='mergesort').reset_index(drop=True)

        n_customers = len(rfm)
        max_bins = max(self.recency_bins, self.frequency_bins, self.monetary_bins)
        if n_customers < max_bins:
            logger.warning(
                f"Only {n_customers} customers for {max_bins} bins; "
                f"scores collapse to ranks 1..{n_customers}"
            )

        # Recency: lower is better (inverse scoring)
        rfm['r_score'] = ntile(-rfm['recency'], self.recency_bins)

        # Frequency and monetary: higher is better
        rfm['f_score'] = ntile(rfm['frequency'], self.frequency_bins)
        rfm['m_score'] = ntile(rfm['monetary'], self.monetary_bins)

        rfm['rfm_score'] = rfm['r_score'] + rfm['f_score'] + rfm['m_score']

        logger.info("Calculated RFM scores")
        return rfm

    def assign_segment(self, rfm_score: int) -> str:
        """Label for a single combined score."""
        for min_score, label in self.segment_thresholds:
            if rfm_score >= min_score:
                return label
        return self.default_segment

    def segment_customers(self, rfm: pd.DataFrame) -> pd.DataFrame:
        """
        Assign customers to segments from their combined RFM score.

        Args:
            rfm: DataFrame with RFM scores

        Returns:
            DataFrame with segment assignments
        """
        DataLoader.require_columns(rfm, ['rfm_score'], table_name='rfm scores')
        rfm = rfm.copy()

        rfm['segment'] = rfm['rfm_score'].map(self.assign_segment)

        segment_counts = rfm['segment'].value_counts()
        logger.info(f"Segment distribution:\n{segment_counts}")

        return rfm

    def score_customers(
        self,
        df: pd.DataFrame,
        analysis_date: Optional[datetime] = None,
        **column_names
    ) -> pd.DataFrame:
        """
        Run metrics, scoring and segmentation in one pass.

        Args:
            df: Enriched transaction DataFrame
            analysis_date: Reference date (default: latest timestamp in df)
            **column_names: Column overrides passed to calculate_rfm

        Returns:
            Scored-customer table (see SCORED_COLUMNS)
        """
        rfm = self.calculate_rfm(df, analysis_date=analysis_date, **column_names)
        rfm = self.calculate_rfm_scores(rfm)
        rfm = self.segment_customers(rfm)
        return rfm[SCORED_COLUMNS]

    def get_segment_profiles(self, rfm: pd.DataFrame) -> pd.DataFrame:
        """
        Generate profiles for each customer segment.

        Args:
            rfm: DataFrame with RFM scores and segments

        Returns:
            DataFrame with segment profiles, highest average spend first
        """
        if 'segment' not in rfm.columns:
            rfm = self.segment_customers(rfm)

        profile_cols = ['recency', 'frequency', 'monetary', 'rfm_score']

        profile = rfm.groupby('segment')[profile_cols].agg(['mean', 'median'])

        # Flatten column names
        profile.columns = ['_'.join(col).strip() for col in profile.columns.values]

        total_customers = len(rfm)
        profile['customer_count'] = rfm.groupby('segment').size()
        profile['customer_percentage'] = profile['customer_count'] / total_customers * 100

        return profile.sort_values('monetary_mean', ascending=False).round(2)
