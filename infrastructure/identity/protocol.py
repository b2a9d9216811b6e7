"""IdentityProvider protocol. Routes depend on this, not the concrete verifier."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str = ""


class IdentityProvider(Protocol):
    async def verify(self, token: str) -> Identity:
        """Return the verified identity; raise AuthenticationError on rejection."""
        ...
