"""
Shared infrastructure for the CRUD layer: configuration, logging,
database sessions and error types.
"""
