"""
Business Metrics Module
=======================

Foundational, product, temporal, geographic and cross-dimensional
reporting over the enriched transaction table.
"""

from .performance import BusinessMetrics

__all__ = ["BusinessMetrics"]
