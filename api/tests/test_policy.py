from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from game_hangar.policy import PolicyEngine, role_closure


def test_role_closure_follows_groupings():
    groupings = {"paidtier": ["freetier"], "freetier": ["guest"]}
    assert role_closure("paidtier", groupings) == {"paidtier", "freetier", "guest"}
    assert role_closure("freetier", groupings) == {"freetier", "guest"}
    assert role_closure("nobody", groupings) == {"nobody"}


def test_role_closure_tolerates_cycles():
    groupings = {"a": ["b"], "b": ["a"]}
    assert role_closure("a", groupings) == {"a", "b"}


def test_builtin_policy(db: Session):
    policy = PolicyEngine(db)
    assert policy.enforce("freetier", "demos", "POST")
    assert not policy.enforce("freetier", "demos", "POSTExtended")
    assert policy.enforce("paidtier", "demos", "POSTExtended")
    # Inherited from freetier
    assert policy.enforce("paidtier", "assets", "POST")
    assert policy.enforce("admin", "anything/at/all", "DELETE")


def test_owner_tuples(db: Session):
    policy = PolicyEngine(db)
    owner = str(uuid.uuid4())
    policy.add_permissions(owner, "threads/1", ("PATCH", "DELETE"))
    policy.add_permission(owner, "threads/1", "PATCH")

    assert policy.enforce(owner, "threads/1", "PATCH")
    assert not policy.enforce(owner, "threads/2", "PATCH")
    assert sorted(a for s, a in policy.permissions_for_object("threads/1") if s == owner) == [
        "DELETE",
        "PATCH",
    ]
    assert policy.enforce_any((None, owner), "threads/1", "DELETE")

    policy.remove_permissions_for_object("threads/1")
    assert not policy.enforce(owner, "threads/1", "DELETE")


def test_rename_and_remove_subject(db: Session):
    policy = PolicyEngine(db)
    old, new = f"role{uuid.uuid4().hex[:6]}", f"role{uuid.uuid4().hex[:6]}"
    policy.add_permission(old, "topics", "POST")
    policy.add_grouping(old, "freetier")
    policy.add_grouping("childrole", old)

    policy.rename_subject(old, new)
    assert policy.has_permission(new, "topics", "POST")
    assert policy.has_grouping(new, "freetier")
    assert policy.has_grouping("childrole", new)
    assert not policy.has_permission(old, "topics", "POST")

    assert policy.remove_for_subject(new) == 3
    assert not policy.enforce(new, "demos", "POST")
