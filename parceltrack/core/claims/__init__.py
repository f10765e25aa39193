# parceltrack/core/claims/__init__.py
"""
Driver claim coordinator.
"""

from parceltrack.core.claims.service import ClaimCoordinator

__all__ = ["ClaimCoordinator"]
