"""
Infrastructure: database sessions and request correlation.
"""
