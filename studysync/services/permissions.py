"""
Access rules for study plans.

Every check is a pure function of the plan and the caller, so routers and
services consult the same rules regardless of how shares are stored. A
caller is matched against a share entry by user id or, for invitations
accepted before the account existed, by email.
"""

from typing import Optional

from ..models.enums import ShareRole
from ..models.study_plan import SharedWith, StudyPlan
from ..models.user import User

ROLE_RANK = {ShareRole.VIEWER: 1, ShareRole.EDITOR: 2}


def _user_id(user: Optional[User]) -> Optional[str]:
    return str(user.id) if user is not None and user.id is not None else None


def find_share(plan: StudyPlan, user: Optional[User]) -> Optional[SharedWith]:
    """The share entry that grants ``user`` access, if any"""
    if user is None:
        return None

    uid = _user_id(user)
    email = (user.email or "").lower()
    for entry in plan.shared_with:
        if uid and entry.user_id == uid:
            return entry
        if email and entry.email.lower() == email:
            return entry
    return None


def is_creator(plan: StudyPlan, user: Optional[User]) -> bool:
    uid = _user_id(user)
    return uid is not None and plan.created_by == uid


def collaborator_role(plan: StudyPlan, user: Optional[User]) -> Optional[ShareRole]:
    entry = find_share(plan, user)
    return entry.role if entry else None


def can_view(plan: StudyPlan, user: Optional[User]) -> bool:
    return plan.is_public or is_creator(plan, user) or find_share(plan, user) is not None


def can_edit(plan: StudyPlan, user: Optional[User]) -> bool:
    return is_creator(plan, user) or collaborator_role(plan, user) == ShareRole.EDITOR


def can_share(plan: StudyPlan, user: Optional[User], role: ShareRole) -> bool:
    """Creators grant any role; editors grant at most their own rank"""
    if is_creator(plan, user):
        return True
    own = collaborator_role(plan, user)
    if own != ShareRole.EDITOR:
        return False
    return ROLE_RANK[role] <= ROLE_RANK[own]


def can_remove_collaborator(plan: StudyPlan, user: Optional[User], entry: SharedWith) -> bool:
    """Creator removes anyone; a collaborator only removes themselves"""
    if is_creator(plan, user):
        return True
    own = find_share(plan, user)
    return own is not None and own.email.lower() == entry.email.lower()
