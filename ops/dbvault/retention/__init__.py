"""
Retention module for dbvault.

Computes which stored artifacts to delete under the daily / weekly /
monthly keep rule. Decisions are recomputed on every cleanup run from
the store listing.
"""

from .policy import RetentionDecision, RetentionPolicy

__all__ = ["RetentionDecision", "RetentionPolicy"]
