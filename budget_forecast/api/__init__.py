"""
REST API for the forecasting view.
"""
