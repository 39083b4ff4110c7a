"""
Data Loading and Validation Module
===================================

Loads the raw online retail transaction log and validates that the
tables passed between pipeline stages carry the columns they need.

Usage:
    from retail_insights.common import DataLoader

    loader = DataLoader()
    raw = loader.load_transactions("data/online_retail.csv")

    # Data quality of the raw log
    is_valid, report = loader.validate_transactions(raw)
"""

import pandas as pd
from pathlib import Path
from typing import Optional, Union, List, Dict, Tuple, Any
from loguru import logger

from .config import DEFAULT_CONFIG


class DataLoader:
    """
    Reader for raw transaction logs plus column checks between stages.

    Attributes:
        config (dict): Configuration dictionary
        supported_formats (list): Accepted file suffixes

    Example:
        >>> loader = DataLoader()
        >>> raw = loader.load_transactions("online_retail.csv")
        >>> is_valid, report = loader.validate_transactions(raw)
    """

    # Identifier columns are read as text so "536365" and "17850" keep their form
    ID_COLUMNS = ['InvoiceNo', 'StockCode', 'CustomerID']

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize DataLoader.

        Args:
            config: Configuration dictionary (see common.config)
        """
        self.config = config if config is not None else DEFAULT_CONFIG
        self.supported_formats = ['.csv', '.txt']
        logger.info("DataLoader initialized")

    def load_csv(
        self,
        filepath: Union[str, Path],
        dtype: Optional[Dict[str, Any]] = None,
        encoding: str = 'utf-8',
        **kwargs
    ) -> pd.DataFrame:
        """
        Read a delimited file.

        Undecodable bytes are replaced rather than failing the read; the
        UCI export is not clean UTF-8.

        Args:
            filepath: Path to the file
            dtype: Column dtypes
            encoding: Text encoding
            **kwargs: Passed through to pd.read_csv

        Returns:
            DataFrame with loaded data

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the suffix is not supported
        """
        filepath = self._check_path(filepath)
        logger.info(f"Reading {filepath}")

        with open(filepath, 'r', encoding=encoding, errors='replace') as f:
            df = pd.read_csv(f, dtype=dtype, low_memory=False, **kwargs)

        logger.info(f"Read {len(df)} rows, {len(df.columns)} columns")
        return df

    def load_transactions(self, filepath: Union[str, Path]) -> pd.DataFrame:
        """
        Load the raw transaction log and check its columns.

        Dates are left as text; parsing belongs to the cleaning stage.

        Args:
            filepath: Path to the raw CSV file

        Returns:
            Raw transaction DataFrame

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If required columns are missing
        """
        df = self.load_csv(filepath, dtype={col: str for col in self.ID_COLUMNS})

        self.require_columns(
            df, self.config['data']['required_columns'], table_name='raw transactions'
        )
        return df

    def _check_path(self, filepath: Union[str, Path]) -> Path:
        path = Path(filepath)
        if not path.is_file():
            raise FileNotFoundError(f"Transaction file not found: {path}")
        if path.suffix.lower() not in self.supported_formats:
            raise ValueError(
                f"Unsupported format '{path.suffix}' for {path}; "
                f"expected one of {self.supported_formats}"
            )
        return path

    @staticmethod
    def require_columns(
        df: pd.DataFrame,
        columns: List[str],
        table_name: str = 'table'
    ) -> None:
        """
        Raise if an upstream table is absent or lacks required columns.

        Args:
            df: Table handed over from an upstream stage
            columns: Required column names
            table_name: Name used in the error message

        Raises:
            ValueError: If the table is missing or columns are absent
        """
        if df is None:
            raise ValueError(f"Upstream table '{table_name}' is missing")

        missing = [col for col in columns if col not in df.columns]
        if missing:
            raise ValueError(
                f"Table '{table_name}' is missing required columns: {missing}"
            )

    def validate_transactions(self, df: pd.DataFrame) -> Tuple[bool, Dict[str, Any]]:
        """
        Data-quality report of a raw transaction log.

        The log is valid when it has rows and every required column.
        Sparse columns, guest purchases and cancellations are reported as
        warnings; the cleaning stage deals with them.

        Args:
            df: Raw transaction DataFrame with the UCI column names

        Returns:
            Tuple of (is_valid, report)
        """
        data_config = self.config['data']
        errors: List[str] = []
        warnings: List[str] = []

        if len(df) == 0:
            errors.append("Transaction log has no rows")

        missing = [col for col in data_config['required_columns'] if col not in df.columns]
        if missing:
            errors.append(f"Missing required columns: {missing}")

        threshold = data_config.get('missing_value_threshold', 0.3)
        missing_ratio = df.isna().mean() if len(df) else pd.Series(dtype=float)
        for col, ratio in missing_ratio.items():
            if ratio > threshold:
                warnings.append(f"{ratio:.1%} of '{col}' is missing")

        statistics: Dict[str, Any] = {
            'n_rows': len(df),
            'missing_values': df.isna().sum().astype(int).to_dict(),
        }
        if 'InvoiceNo' in df.columns:
            invoices = df['InvoiceNo'].astype(str)
            statistics['n_invoices'] = int(invoices.nunique())
            statistics['cancellation_lines'] = int(invoices.str.upper().str.startswith('C').sum())
        if 'Quantity' in df.columns:
            quantity = pd.to_numeric(df['Quantity'], errors='coerce')
            statistics['non_positive_quantity_lines'] = int((quantity <= 0).sum())
        if 'CustomerID' in df.columns:
            statistics['guest_lines'] = int(df['CustomerID'].isna().sum())

        for warning in warnings:
            logger.warning(warning)

        report = {
            'is_valid': not errors,
            'errors': errors,
            'warnings': warnings,
            'statistics': statistics,
        }
        return report['is_valid'], report
