from __future__ import annotations

import pytest

from target_ledger.core.errors import AuthorizationError
from target_ledger.services.identity import ActorRole, require_root, require_self_or_root, resolve_actor


def test_root_role_accepted_only_for_rollup_owner() -> None:
    root = resolve_actor(1, ActorRole.ROOT, "Finance", root_owner_id=1)

    assert root.is_root
    require_root(root, action="reverse fund transfers")
    with pytest.raises(AuthorizationError):
        resolve_actor(101, ActorRole.ROOT, root_owner_id=1)


def test_owner_may_act_only_for_themselves() -> None:
    owner = resolve_actor(101, ActorRole.OWNER, root_owner_id=1)

    require_self_or_root(owner, 101, action="submit progress")
    with pytest.raises(AuthorizationError):
        require_self_or_root(owner, 102, action="submit progress")
    with pytest.raises(AuthorizationError):
        require_root(owner, action="delete targets")
