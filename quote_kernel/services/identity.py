"""
quote_kernel.services.identity -- SQL-backed identity provider.

Resolves a user id to an AuthenticatedUser carrying the user's active
role grants.  Authentication itself happens upstream; this module only
answers "which roles does this principal hold right now".
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from quote_kernel.domain.approval import AuthenticatedUser, RoleName
from quote_kernel.logging_config import get_logger
from quote_kernel.models.user import ProfileModel, UserRoleModel

logger = get_logger("services.identity")


class SqlIdentityProvider:
    """Reads ``profiles`` and active ``user_roles`` rows."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_user(self, user_id: UUID) -> AuthenticatedUser | None:
        """Return the principal with its active roles, or None if unknown."""
        profile = self._session.get(ProfileModel, user_id)
        grants = self._session.execute(
            select(UserRoleModel.role).where(
                UserRoleModel.user_id == user_id,
                UserRoleModel.is_active.is_(True),
            )
        ).scalars().all()

        if profile is None and not grants:
            return None

        roles: set[RoleName] = set()
        for grant in grants:
            try:
                roles.add(RoleName.parse(grant))
            except ValueError:
                logger.warning(
                    "unknown_role_grant_ignored",
                    extra={"user_id": str(user_id), "role": grant},
                )

        return AuthenticatedUser(
            user_id=user_id,
            roles=frozenset(roles),
            display_name=profile.full_name if profile is not None else None,
        )
