"""
Infrastructure Layer - Storage collaborators for the forecasting view.
"""
