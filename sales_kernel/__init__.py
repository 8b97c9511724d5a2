"""
Sales Kernel - commercial proposal core

The domain, persistence and logging foundation for real-estate
commercial proposals:
- Decimal-only money and percentage reconciliation
- Immutable proposal value objects and lifecycle statuses
- Append-only proposal history
- Flush-only persistence with read-only selectors
"""

__version__ = "0.1.0"
