"""Acuity availability aggregation and booking synchronization service"""

__version__ = "1.0.0"
