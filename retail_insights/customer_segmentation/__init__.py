"""
Customer Segmentation Module
============================

RFM quintile scoring, rule-based segments and segment-level
lifetime value, churn and order value analysis.
"""

from .rfm_features import RFMFeatureEngineer, ntile, SEGMENT_THRESHOLDS
from .segment_analysis import SegmentAnalyzer

__all__ = ["RFMFeatureEngineer", "SegmentAnalyzer", "ntile", "SEGMENT_THRESHOLDS"]
