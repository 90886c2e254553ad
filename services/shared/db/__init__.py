"""
Database connectivity module for donation tracker services.

This module provides PostgreSQL (and SQLite, for tests) connectivity with
conflict-skipping inserts using SQLAlchemy 2.x and psycopg3, plus the table
definitions shared by every service.
"""

from .connector import get_engine, insert_or_skip
from .schema import create_schema, metadata

__all__ = ["get_engine", "insert_or_skip", "create_schema", "metadata"]
