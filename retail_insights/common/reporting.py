"""
Reporting Module
================

Persist the tables produced by each pipeline stage so downstream
consumers (charting, dashboards) can pick them up, together with a
JSON run summary.

Usage:
    from retail_insights.common import Reporter

    reporter = Reporter(output_dir="outputs")
    reporter.save_tables(metric_tables, subdir="metrics")
    reporter.generate_segmentation_report(results)
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Dict, Any, Optional
from datetime import datetime
import json
from loguru import logger


class Reporter:
    """
    Writes analytics tables as CSV and run summaries as JSON.

    Example:
        >>> reporter = Reporter(output_dir="outputs")
        >>> paths = reporter.save_tables({'segment_order_value': aov})
    """

    def __init__(self, output_dir: str = "outputs"):
        """
        Initialize Reporter.

        Args:
            output_dir: Directory for saving reports
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Reporter initialized. Output: {self.output_dir}")

    def save_table(
        self,
        table: pd.DataFrame,
        name: str,
        subdir: Optional[str] = None
    ) -> Path:
        """
        Write one table to ``<output_dir>/[subdir/]<name>.csv``.

        Args:
            table: DataFrame to save
            name: File stem
            subdir: Optional sub-directory

        Returns:
            Path of the written file
        """
        target_dir = self.output_dir / subdir if subdir else self.output_dir
        target_dir.mkdir(parents=True, exist_ok=True)

        csv_path = target_dir / f"{name}.csv"
        table.to_csv(csv_path, index=False)
        logger.debug(f"Saved {len(table)} rows to {csv_path}")
        return csv_path

    def save_tables(
        self,
        tables: Dict[str, pd.DataFrame],
        subdir: Optional[str] = None
    ) -> Dict[str, Path]:
        """
        Write every table of a stage.

        Args:
            tables: Dictionary of name -> DataFrame
            subdir: Optional sub-directory

        Returns:
            Dictionary of name -> file path
        """
        output_paths = {
            name: self.save_table(table, name, subdir=subdir)
            for name, table in tables.items()
        }
        logger.info(f"Saved {len(output_paths)} tables to {self.output_dir / (subdir or '')}")
        return output_paths

    def generate_segmentation_report(
        self,
        results: Dict[str, Any],
        report_name: str = "segmentation_summary",
        subdir: str = "segmentation"
    ) -> Dict[str, Path]:
        """
        Persist the segmentation stage.

        Args:
            results: Segmentation results containing:
                - scored_customers: Scored-customer table
                - segment_tables: Dictionary of segment summary tables
                - analysis_date: Latest timestamp of the dataset
                - cutoff_date: Churn cutoff date
                - statistical_tests: Segment differentiation tests
            report_name: Base name of the JSON summary
            subdir: Sub-directory for the CSV tables

        Returns:
            Dictionary of name -> file path
        """
        scored = results.get('scored_customers', pd.DataFrame())
        segment_tables = results.get('segment_tables', {})

        output_paths = {}
        if not scored.empty:
            output_paths['scored_customers'] = self.save_table(
                scored, 'rfm_scored_customers', subdir=subdir
            )
        output_paths.update(self.save_tables(segment_tables, subdir=subdir))

        json_path = self.output_dir / f"{report_name}.json"
        json_data = {
            'generated_at': datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            'analysis_date': self._format_date(results.get('analysis_date')),
            'cutoff_date': self._format_date(results.get('cutoff_date')),
            'n_customers': len(scored),
            'segment_customer_distribution': self._convert_to_serializable(
                segment_tables.get('segment_customer_distribution', pd.DataFrame())
            ),
            'segment_lifetime_value': self._convert_to_serializable(
                segment_tables.get('segment_lifetime_value', pd.DataFrame())
            ),
            'segment_order_value': self._convert_to_serializable(
                segment_tables.get('segment_order_value', pd.DataFrame())
            ),
            'statistical_tests': self._convert_to_serializable(
                results.get('statistical_tests', {})
            ),
        }

        with open(json_path, 'w') as f:
            json.dump(json_data, f, indent=2)
        output_paths['summary'] = json_path

        logger.info(f"Generated segmentation report: {json_path}")
        return output_paths

    @staticmethod
    def _format_date(value: Any) -> Optional[str]:
        if value is None or pd.isna(value):
            return None
        return pd.Timestamp(value).isoformat()

    def _convert_to_serializable(self, obj: Any) -> Any:
        """Convert numpy/pandas types to JSON serializable."""
        if isinstance(obj, dict):
            return {str(k): self._convert_to_serializable(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._convert_to_serializable(v) for v in obj]
        elif isinstance(obj, pd.DataFrame):
            return [self._convert_to_serializable(r) for r in obj.to_dict('records')]
        elif isinstance(obj, pd.Series):
            return self._convert_to_serializable(obj.to_dict())
        elif isinstance(obj, np.ndarray):
            return [self._convert_to_serializable(v) for v in obj.tolist()]
        elif isinstance(obj, (bool, np.bool_)):
            return bool(obj)
        elif isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, (float, np.floating)):
            return None if np.isnan(obj) else float(obj)
        elif obj is None or obj is pd.NA or obj is pd.NaT:
            return None
        elif isinstance(obj, (pd.Timestamp, datetime)):
            return obj.isoformat()
        else:
            return obj
