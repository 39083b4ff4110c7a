"""
Aggregation Helpers
===================

Group-by reductions shared by the business metrics and the segment
intelligence layer. Each named metric maps to a source column and a
reduction; averages are rounded to 2 decimals.

Usage:
    from retail_insights.common.aggregation import summarize, top_n_per_group

    by_country = summarize(transactions, ['country'], 'total_revenue')
    leaders = top_n_per_group(
        summarize(transactions, ['country', 'stock_code', 'product_label'], 'total_quantity'),
        'country', 'total_quantity', n=2
    )
"""

import pandas as pd
from typing import List, Optional, Dict, Tuple


METRICS: Dict[str, Tuple[str, str]] = {
    'total_quantity': ('quantity', 'sum'),
    'average_quantity': ('quantity', 'mean'),
    'total_revenue': ('revenue', 'sum'),
    'average_revenue': ('revenue', 'mean'),
    'total_orders': ('invoice_no', 'nunique'),
    'total_order_lines': ('invoice_no', 'size'),
    'total_customers': ('customer_id', 'nunique'),
}

DAY_ORDER = [
    'Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday'
]
MONTH_ORDER = [
    'January', 'February', 'March', 'April', 'May', 'June', 'July',
    'August', 'September', 'October', 'November', 'December'
]
CALENDAR_ORDER = {'day': DAY_ORDER, 'month': MONTH_ORDER}


def with_calendar_order(df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    """Cast day/month name columns to ordered categoricals so groups sort chronologically."""
    df = df.copy()
    for col in columns:
        if col in CALENDAR_ORDER and col in df.columns:
            df[col] = pd.Categorical(df[col], categories=CALENDAR_ORDER[col], ordered=True)
    return df


def summarize(df: pd.DataFrame, group_columns: List[str], metric: str) -> pd.DataFrame:
    """
    Reduce a transaction table to one row per group for a named metric.

    Args:
        df: Enriched transaction DataFrame
        group_columns: Columns to group by
        metric: Key of METRICS

    Returns:
        DataFrame with group_columns and one metric column, in group-key order
    """
    if metric not in METRICS:
        raise ValueError(f"Unknown metric: {metric}")

    column, func = METRICS[metric]
    missing = [c for c in group_columns + [column] if c not in df.columns]
    if missing:
        raise ValueError(f"Cannot compute '{metric}': missing columns {missing}")

    df = with_calendar_order(df, group_columns)
    grouped = df.groupby(group_columns, sort=True, observed=True)[column]

    if func == 'size':
        result = grouped.size()
    else:
        result = grouped.agg(func)

    result = result.rename(metric).reset_index()

    if func == 'mean':
        result[metric] = result[metric].round(2)

    return result


def rank_table(
    table: pd.DataFrame,
    metric: str,
    ascending: bool = False,
    n: Optional[int] = None
) -> pd.DataFrame:
    """Sort by a metric (stable, so ties keep group-key order) and optionally keep n rows."""
    ranked = table.sort_values(metric, ascending=ascending, kind='mergesort')
    if n is not None:
        ranked = ranked.head(n)
    return ranked.reset_index(drop=True)


def top_n_per_group(
    table: pd.DataFrame,
    group_column: str,
    metric: str,
    n: int = 2
) -> pd.DataFrame:
    """
    Keep the n highest rows of each group, without ties.

    Rows tied on the metric keep their existing order, so the earlier row
    in group-key order wins. The result is sorted by the metric, highest first.

    Args:
        table: Summarized table containing group_column and metric
        group_column: Column defining the groups
        metric: Column to rank by
        n: Rows to keep per group

    Returns:
        DataFrame with at most n rows per group
    """
    ordered = table.sort_values(
        [group_column, metric], ascending=[True, False], kind='mergesort'
    )
    top = ordered.groupby(group_column, sort=False, observed=True).head(n)
    return rank_table(top, metric)
