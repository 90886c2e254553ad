"""
Donation Tracker shared service layer.

Common building blocks for the donation tracker services:
- Pydantic settings for configuration
- Structured JSON logging with structlog
- SQLAlchemy engine, schema and dialect-aware conflict-skipping inserts
- Name and email normalization helpers
"""

__version__ = "0.1.0"
