"""
Manager hierarchy traversal used to pick approvers and escalation targets.

The manager_id self-reference is acyclic in practice but not enforced by the
schema, so every walk is bounded by MAX_HIERARCHY_DEPTH and a revisited user
is reported as a HierarchyCycleError instead of looping.
"""
import logging
from typing import Collection, List, Optional
from sqlalchemy import case
from sqlalchemy.orm import Session
from leavetrack.core.config import settings
from leavetrack.models.user import User

logger = logging.getLogger(__name__)


class HierarchyCycleError(Exception):
    """The manager chain loops back on itself; HR has to fix the reporting lines."""

    def __init__(self, start_user_id: int, chain: List[int]):
        self.start_user_id = start_user_id
        self.chain = chain
        super().__init__(
            f"Manager hierarchy cycle starting at user {start_user_id}: {' -> '.join(str(i) for i in chain)}"
        )


def get_manager_chain(db: Session, user_id: int, max_depth: Optional[int] = None) -> List[User]:
    """
    Managers above user_id, nearest first, at most max_depth hops.
    Inactive managers are included; callers decide whether to skip them.

    Raises:
        HierarchyCycleError: if the walk revisits a user
    """
    max_depth = max_depth or settings.MAX_HIERARCHY_DEPTH
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        return []

    visited = [user.id]
    chain: List[User] = []
    current = user
    for _ in range(max_depth):
        manager_id = current.manager_id
        if manager_id is None:
            break
        if manager_id in visited:
            raise HierarchyCycleError(user_id, visited + [manager_id])
        manager = db.query(User).filter(User.id == manager_id).first()
        if manager is None:
            break
        visited.append(manager.id)
        chain.append(manager)
        current = manager
    return chain


def find_fallback_approver(db: Session, exclude_ids: Collection[int]) -> Optional[User]:
    """First active user holding one of the configured fallback roles, in role priority order."""
    roles = settings.get_escalation_fallback_roles()
    if not roles:
        return None
    priority = case({role: index for index, role in enumerate(roles)}, value=User.role)
    query = db.query(User).filter(User.is_active == True, User.role.in_(roles))  # noqa: E712
    if exclude_ids:
        query = query.filter(User.id.notin_(list(exclude_ids)))
    return query.order_by(priority, User.id).first()


def resolve_approver(
    db: Session,
    requester_id: int,
    start_from_id: Optional[int] = None,
    exclude_ids: Collection[int] = (),
    include_fallback: bool = True,
) -> Optional[User]:
    """
    Next eligible approver for a request by requester_id.

    Walks up from start_from_id (the current approver, when escalating) or
    from the requester, skipping inactive users, the requester and anyone in
    exclude_ids. Falls back to the configured roles when the chain runs out.

    Returns:
        The approver, or None when nobody is eligible

    Raises:
        HierarchyCycleError: if the manager chain loops
    """
    excluded = set(exclude_ids) | {requester_id}
    origin = start_from_id if start_from_id is not None else requester_id
    for manager in get_manager_chain(db, origin):
        if manager.is_active and manager.id not in excluded:
            return manager

    if include_fallback:
        fallback = find_fallback_approver(db, excluded)
        if fallback is not None:
            logger.info(
                "Manager chain above user %s exhausted; routing to %s (%s)", origin, fallback.id, fallback.role
            )
        return fallback
    return None
