"""
Payment Import Service

Historical payment import & reconciliation for the donation tracker:
- Loads processor CSV exports (file or URL)
- Resolves donors, beneficiaries and projects
- Classifies payment status and flags duplicate subscriptions
- Writes donations idempotently and reports a per-run summary
"""

__version__ = "0.1.0"
