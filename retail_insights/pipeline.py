"""
Pipeline Stages
===============

Sequential batch stages: load -> clean -> enrich -> metrics ->
segmentation -> segment intelligence. Each stage takes the
configuration dictionary explicitly and returns plain tables.

Usage:
    from retail_insights.pipeline import run_pipeline

    results = run_pipeline("data/online_retail.csv", config, output_dir="outputs")
"""

from pathlib import Path
from typing import Optional, Dict, Any
import pandas as pd
from loguru import logger

from .common import DataLoader, Preprocessor, Reporter, DEFAULT_CONFIG
from .business_metrics import BusinessMetrics
from .customer_segmentation import RFMFeatureEngineer, SegmentAnalyzer


def prepare_transactions(data_path: str, config: Dict[str, Any]) -> pd.DataFrame:
    """Load, clean and enrich the raw transaction log."""
    logger.info("Starting data preparation")

    loader = DataLoader(config)
    raw = loader.load_transactions(data_path)

    is_valid, report = loader.validate_transactions(raw)
    if not is_valid:
        raise ValueError(f"Invalid transaction log {data_path}: {report['errors']}")
    logger.info(f"Raw log statistics: {report['statistics']}")

    preprocessor = Preprocessor(config)
    clean = preprocessor.clean_transactions(raw)
    if clean.empty:
        raise ValueError(f"No valid transactions left after cleaning {data_path}")

    return preprocessor.enrich_transactions(clean)


def run_metrics(transactions: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, pd.DataFrame]:
    """Product, temporal, geographic and cross-dimensional reports."""
    logger.info("Starting business metrics")

    metrics_config = config['metrics']
    metrics = BusinessMetrics(
        top_n=metrics_config['top_n'],
        cross_top_n=metrics_config['cross_top_n']
    )
    return metrics.compute_all(transactions)


def run_segmentation(transactions: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    RFM scoring and segment intelligence.

    The analysis date is computed once here and handed to both the
    scorer and the churn assessment.
    """
    logger.info("Starting RFM segmentation")

    guest_id = config['data']['guest_customer_id']
    seg_config = config['segmentation']

    engineer = RFMFeatureEngineer(
        recency_bins=seg_config['n_bins'],
        frequency_bins=seg_config['n_bins'],
        monetary_bins=seg_config['n_bins'],
        guest_customer_id=guest_id,
        segment_thresholds=seg_config['segment_thresholds'],
        default_segment=seg_config['default_segment']
    )
    analysis_date = engineer.get_analysis_date(transactions)
    scored = engineer.score_customers(transactions, analysis_date=analysis_date)

    analyzer = SegmentAnalyzer(
        guest_customer_id=guest_id,
        churn_days=seg_config['churn_days'],
        top_n=seg_config['top_n']
    )
    segment_tables = analyzer.analyze_segments(
        scored, transactions, analysis_date=analysis_date
    )

    logger.info("\n" + analyzer.generate_summary(scored))

    return {
        'scored_customers': scored,
        'segment_profiles': engineer.get_segment_profiles(scored).reset_index(),
        'segment_tables': segment_tables,
        'statistical_tests': analyzer.compare_segments(scored),
        'analysis_date': analysis_date,
        'cutoff_date': analysis_date - pd.Timedelta(days=seg_config['churn_days']),
    }


def run_pipeline(
    data_path: str,
    config: Optional[Dict[str, Any]] = None,
    output_dir: str = "outputs",
    task: str = "all"
) -> Dict[str, Any]:
    """
    Run the requested stages and persist their tables.

    Args:
        data_path: Path to the raw transaction CSV
        config: Configuration dictionary (defaults if None)
        output_dir: Directory for the persisted tables
        task: One of clean, metrics, segment, all

    Returns:
        Dictionary with the results of every stage that ran
    """
    if task not in ('clean', 'metrics', 'segment', 'all'):
        raise ValueError(f"Unknown task: {task}")

    config = config if config is not None else DEFAULT_CONFIG
    reporter = Reporter(output_dir=output_dir)
    results: Dict[str, Any] = {}

    transactions = prepare_transactions(data_path, config)
    results['transactions'] = transactions
    reporter.save_table(transactions, 'online_retail_enriched', subdir='processed')
    reporter.save_table(
        Preprocessor(config).get_product_mapping(transactions),
        'product_mapping_table', subdir='processed'
    )

    if task in ('metrics', 'all'):
        results['metrics'] = run_metrics(transactions, config)
        reporter.save_tables(results['metrics'], subdir='metrics')

    if task in ('segment', 'all'):
        results['segmentation'] = run_segmentation(transactions, config)
        reporter.save_table(
            results['segmentation']['segment_profiles'], 'segment_profiles',
            subdir='segmentation'
        )
        reporter.generate_segmentation_report(results['segmentation'])

    logger.info(f"Pipeline '{task}' complete. Results saved to {Path(output_dir)}")
    return results
