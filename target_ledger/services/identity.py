"""Caller identity supplied by the external identity/role provider."""
from __future__ import annotations

import enum
from dataclasses import dataclass

from target_ledger.core.errors import AuthorizationError


class ActorRole(str, enum.Enum):
    ROOT = "ROOT"
    OWNER = "OWNER"


@dataclass(slots=True, frozen=True)
class Actor:
    """Identity of the caller. Trusted as supplied."""

    owner_id: int
    role: ActorRole
    display_name: str | None = None

    @property
    def is_root(self) -> bool:
        return self.role == ActorRole.ROOT


def resolve_actor(
    owner_id: int,
    role: ActorRole,
    display_name: str | None = None,
    *,
    root_owner_id: int,
) -> Actor:
    """Build the caller's identity, binding the ROOT role to the roll-up owner id.

    A ROOT claim for any other owner id is refused.
    """

    if role == ActorRole.ROOT and owner_id != root_owner_id:
        raise AuthorizationError(f"Owner '{owner_id}' cannot act with the ROOT role")
    return Actor(owner_id=owner_id, role=role, display_name=display_name)


def require_root(actor: Actor, *, action: str) -> None:
    if not actor.is_root:
        raise AuthorizationError(f"Only the root role may {action}")


def require_self_or_root(actor: Actor, owner_id: int, *, action: str) -> None:
    if actor.owner_id != owner_id and not actor.is_root:
        raise AuthorizationError(f"Only the owner or the root role may {action}")


__all__ = ["Actor", "ActorRole", "require_root", "require_self_or_root", "resolve_actor"]
