"""
Entry point for running the payment import as a module.

Usage:
    python -m services.payment_import path/to/export.csv
"""

import sys

from .main import main

if __name__ == "__main__":
    sys.exit(main())
