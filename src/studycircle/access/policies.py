"""Row-level authorization rules.

Every (entity, operation) pair the application performs is decided here by a
pure function of the actor and the row. No I/O happens in this module: rules
that depend on group membership take the membership fact as an argument, and
the caller looks it up.

Pairs with no rule are denied.
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from studycircle.db.models import PrivacyLevel
from studycircle.errors import Forbidden

T = TypeVar("T")


class Entity(str, enum.Enum):
    PROFILE = "profile"
    SUBJECT = "subject"
    QUESTION = "question"
    ANSWER = "answer"
    STUDY_GROUP = "study_group"
    GROUP_MEMBERSHIP = "group_membership"
    RESOURCE = "resource"
    MESSAGE = "message"
    BADGE = "badge"
    USER_BADGE = "user_badge"
    NOTIFICATION = "notification"


class Operation(str, enum.Enum):
    READ = "read"
    INSERT = "insert"
    UPDATE = "update"


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation. ``user_id`` is None for anonymous callers."""

    user_id: uuid.UUID | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def owns(self, owner_id: Any) -> bool:  # noqa: ANN401
        return self.user_id is not None and owner_id is not None and self.user_id == owner_id


ANONYMOUS = Actor()


@dataclass(frozen=True)
class Allow:
    allowed: bool = True


@dataclass(frozen=True)
class Deny:
    reason: str
    allowed: bool = False


Decision = Allow | Deny

ALLOW = Allow()


def _field(row: Any, name: str) -> Any:  # noqa: ANN401
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _anyone(_actor: Actor, _row: Any, _is_member: bool) -> Decision:
    return ALLOW


def _owner(column: str) -> Callable[[Actor, Any, bool], Decision]:
    def rule(actor: Actor, row: Any, _is_member: bool) -> Decision:
        if not actor.is_authenticated:
            return Deny("authentication required")
        if actor.owns(_field(row, column)):
            return ALLOW
        return Deny(f"actor does not own this row ({column})")

    return rule


def _group_visible(actor: Actor, row: Any, _is_member: bool) -> Decision:
    privacy = _field(row, "privacy")
    if privacy in (PrivacyLevel.PUBLIC, PrivacyLevel.PUBLIC.value):
        return ALLOW
    if actor.owns(_field(row, "creator_id")):
        return ALLOW
    return Deny("group is not public")


def _members_only(actor: Actor, _row: Any, is_member: bool) -> Decision:
    if not actor.is_authenticated:
        return Deny("authentication required")
    if is_member:
        return ALLOW
    return Deny("actor is not a member of this group")


def _member_author(actor: Actor, row: Any, is_member: bool) -> Decision:
    decision = _owner("user_id")(actor, row, is_member)
    if not decision.allowed:
        return decision
    return _members_only(actor, row, is_member)


_is_owner = _owner("user_id")

POLICIES: dict[tuple[Entity, Operation], Callable[[Actor, Any, bool], Decision]] = {
    (Entity.PROFILE, Operation.READ): _anyone,
    (Entity.PROFILE, Operation.INSERT): _is_owner,
    (Entity.PROFILE, Operation.UPDATE): _is_owner,
    (Entity.SUBJECT, Operation.READ): _anyone,
    (Entity.BADGE, Operation.READ): _anyone,
    (Entity.QUESTION, Operation.READ): _anyone,
    (Entity.QUESTION, Operation.INSERT): _is_owner,
    (Entity.QUESTION, Operation.UPDATE): _is_owner,
    (Entity.ANSWER, Operation.READ): _anyone,
    (Entity.ANSWER, Operation.INSERT): _is_owner,
    (Entity.ANSWER, Operation.UPDATE): _is_owner,
    (Entity.RESOURCE, Operation.READ): _anyone,
    (Entity.RESOURCE, Operation.INSERT): _is_owner,
    (Entity.RESOURCE, Operation.UPDATE): _is_owner,
    (Entity.STUDY_GROUP, Operation.READ): _group_visible,
    (Entity.STUDY_GROUP, Operation.INSERT): _owner("creator_id"),
    (Entity.STUDY_GROUP, Operation.UPDATE): _owner("creator_id"),
    (Entity.GROUP_MEMBERSHIP, Operation.READ): _members_only,
    (Entity.GROUP_MEMBERSHIP, Operation.INSERT): _is_owner,
    (Entity.MESSAGE, Operation.READ): _members_only,
    (Entity.MESSAGE, Operation.INSERT): _member_author,
    (Entity.USER_BADGE, Operation.READ): _anyone,
    (Entity.USER_BADGE, Operation.INSERT): _anyone,
    (Entity.NOTIFICATION, Operation.READ): _is_owner,
    (Entity.NOTIFICATION, Operation.UPDATE): _is_owner,
    (Entity.NOTIFICATION, Operation.INSERT): _anyone,
}


def evaluate(
    actor: Actor,
    entity: Entity,
    operation: Operation,
    row: Any,  # noqa: ANN401
    *,
    is_group_member: bool = False,
) -> Decision:
    """Decide whether ``actor`` may perform ``operation`` on ``row``.

    ``row`` is an ORM instance or a mapping of column values (the row to be
    inserted, for inserts). ``is_group_member`` must be supplied for group
    memberships and messages: whether the actor belongs to the row's group.
    """
    rule = POLICIES.get((entity, operation))
    if rule is None:
        return Deny(f"{operation.value} on {entity.value} is not permitted")
    return rule(actor, row, is_group_member)


def enforce(
    actor: Actor,
    entity: Entity,
    operation: Operation,
    row: Any,  # noqa: ANN401
    *,
    is_group_member: bool = False,
) -> None:
    """Like :func:`evaluate` but raises :class:`Forbidden` on a denial."""
    decision = evaluate(actor, entity, operation, row, is_group_member=is_group_member)
    if isinstance(decision, Deny):
        raise Forbidden(decision.reason)


def filter_readable(
    actor: Actor,
    entity: Entity,
    rows: Iterable[T],
    member_group_ids: set[uuid.UUID] | None = None,
) -> list[T]:
    """Drop rows the actor may not read. A denied read is an empty result, never an error."""
    member_group_ids = member_group_ids or set()
    visible: list[T] = []
    for row in rows:
        group_id = _field(row, "group_id")
        decision = evaluate(
            actor,
            entity,
            Operation.READ,
            row,
            is_group_member=group_id in member_group_ids,
        )
        if decision.allowed:
            visible.append(row)
    return visible
