"""
Review API

HTTP surface for operators reviewing imported donations:
- Lists donations awaiting review (needs_attention, failed, refunded, canceled)
- Applies manual status overrides
- Accepts CSV uploads for the payment import
"""

__version__ = "0.1.0"
