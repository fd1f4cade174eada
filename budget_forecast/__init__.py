"""
Budget Forecast - Monthly forecast aggregation for construction budget lines.
"""

__version__ = "1.0.0"
