from __future__ import annotations
from dataclasses import dataclass
from uuid import UUID
from skatebounty.errors import AuthRequired


@dataclass(frozen=True)
class Identity:
    """Who is calling. Passed explicitly into every operation that needs a user."""
    user_id: UUID | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def require(self, action: str = "continue") -> UUID:
        if self.user_id is None:
            raise AuthRequired(f"Sign in to {action}")
        return self.user_id


ANONYMOUS = Identity()
