"""
Payment Kernel - mobile-money payment verification and reconciliation.

Core persistence and domain layer:
- Append-only notification audit log
- Payment buffers claimed exactly once by atomic compare-and-set
- Duplicate-delivery detection
- Manual reconciliation records
"""

__version__ = "0.1.0"
