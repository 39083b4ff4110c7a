"""
Online Retail Behavioral Analysis
=================================

Batch analytics over a UK e-commerce transaction log:
- Cleaning and enrichment of the raw log
- Product, temporal, geographic and cross-dimensional metrics
- RFM segmentation with lifetime value, churn and order value by segment

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Retail Analytics Team"

from .common import DataLoader, Preprocessor, Reporter, load_config
from .business_metrics import BusinessMetrics
from .customer_segmentation import RFMFeatureEngineer, SegmentAnalyzer
from .pipeline import run_pipeline

__all__ = [
    "DataLoader",
    "Preprocessor",
    "Reporter",
    "load_config",
    "BusinessMetrics",
    "RFMFeatureEngineer",
    "SegmentAnalyzer",
    "run_pipeline",
]
