#!/usr/bin/env python3
"""
Online Retail Analytics - Main Runner
=====================================

Command-line interface for running the retail analytics pipeline.

Usage:
    python run_analytics.py --task all --data data/online_retail.csv
    python run_analytics.py --task segment --data data/online_retail.csv --config config/settings.yaml
    python run_analytics.py --task metrics --data data/online_retail.csv --output outputs

Examples:
    # Clean and enrich only
    python run_analytics.py --task clean --data data/online_retail.csv

    # RFM segmentation with a 90-day churn horizon
    python run_analytics.py --task segment --data data/online_retail.csv --churn-days 90
"""

import argparse
import sys
from pathlib import Path
from loguru import logger

from retail_insights.common import load_config
from retail_insights.pipeline import run_pipeline


def setup_logging(log_level: str = "INFO"):
    """Configure logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Online Retail Behavioral Analysis',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--task',
        choices=['clean', 'metrics', 'segment', 'all'],
        default='all',
        help='Pipeline stages to run'
    )

    parser.add_argument(
        '--data',
        type=str,
        required=True,
        help='Path to the raw transaction CSV'
    )

    parser.add_argument(
        '--config',
        type=str,
        default='config/settings.yaml',
        help='Path to configuration file'
    )

    parser.add_argument(
        '--output',
        type=str,
        default='outputs',
        help='Output directory for results'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )

    # Segmentation options
    parser.add_argument(
        '--churn-days',
        type=int,
        default=None,
        help='Inactivity horizon in days (overrides config)'
    )

    parser.add_argument(
        '--top-n',
        type=int,
        default=None,
        help='Products/countries kept per segment (overrides config)'
    )

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    config = load_config(args.config)

    if args.churn_days is not None:
        config['segmentation']['churn_days'] = args.churn_days
    if args.top_n is not None:
        config['segmentation']['top_n'] = args.top_n

    Path(args.output).mkdir(parents=True, exist_ok=True)

    try:
        run_pipeline(args.data, config, output_dir=args.output, task=args.task)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Pipeline failed: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
