"""
Presentation helpers for forecast views.
"""
