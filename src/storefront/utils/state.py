from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from storefront.db.errors import ForbiddenError, UnauthenticatedError


@dataclass(frozen=True)
class UserContext:
    """
    Identity of the caller, as resolved by the session layer.

    Fields:
      - user_id: users.id of the logged-in user
      - role: "customer" | "admin"
    """

    user_id: int
    role: Literal["customer", "admin"] = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def require_user(ctx: Optional[UserContext]) -> UserContext:
    if ctx is None or ctx.user_id is None:
        raise UnauthenticatedError()
    return ctx


def require_admin(ctx: Optional[UserContext]) -> UserContext:
    ctx = require_user(ctx)
    if not ctx.is_admin:
        raise ForbiddenError()
    return ctx
