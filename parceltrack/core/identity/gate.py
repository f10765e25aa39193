# parceltrack/core/identity/gate.py
"""
Identity gate: turns a bearer token into a caller identity with a role.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from parceltrack.common.constants import UserRole
from parceltrack.common.exceptions import UnauthorizedError
from parceltrack.core.drivers.repository import DriverRepository, MemoryDriverRepository
from parceltrack.core.identity.tokens import issue_token, verify_token


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller."""
    user_id: str
    role: UserRole
    driver_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_driver(self) -> bool:
        return self.driver_id is not None


class IdentityGate:
    """
    Validates bearer tokens and resolves roles.

    Admins come from configuration, drivers from the driver registry,
    everybody else is a customer.
    """

    def __init__(
        self,
        secret: str,
        drivers: DriverRepository | MemoryDriverRepository,
        admin_user_ids: Iterable[str] = (),
        token_ttl: int = 3600,
    ) -> None:
        self._secret = secret
        self._drivers = drivers
        self._admins = frozenset(str(u) for u in admin_user_ids)
        self._token_ttl = token_ttl

    async def authenticate(self, authorization: Optional[str]) -> CallerIdentity:
        """
        Authenticates an Authorization header value.

        Args:
            authorization: "Bearer <token>"

        Raises:
            UnauthorizedError: header missing, malformed, forged or expired
        """
        if not authorization:
            raise UnauthorizedError("Missing bearer token")

        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise UnauthorizedError("Malformed authorization header")

        claims = verify_token(token.strip(), self._secret)
        return await self.resolve(claims.sub)

    async def resolve(self, user_id: str) -> CallerIdentity:
        """Resolves the role of an already verified user id."""
        driver = await self._drivers.get_by_user_id(user_id)
        driver_id = driver.id if driver else None

        if user_id in self._admins:
            role = UserRole.ADMIN
        elif driver is not None:
            role = UserRole.DRIVER
        else:
            role = UserRole.CUSTOMER

        return CallerIdentity(user_id=user_id, role=role, driver_id=driver_id)

    def issue(self, user_id: str, ttl: Optional[int] = None) -> str:
        """Issues a token signed with the gate's secret."""
        return issue_token(user_id, self._secret, ttl or self._token_ttl)
