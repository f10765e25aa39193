# parceltrack/core/identity/__init__.py
"""
Identity gate and bearer tokens.
"""

from parceltrack.core.identity.gate import CallerIdentity, IdentityGate
from parceltrack.core.identity.tokens import TokenClaims, issue_token, verify_token

__all__ = [
    "CallerIdentity",
    "IdentityGate",
    "TokenClaims",
    "issue_token",
    "verify_token",
]
