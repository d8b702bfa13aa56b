from types import SimpleNamespace

from bson import ObjectId

from studysync.models.enums import ShareRole
from studysync.models.study_plan import SharedWith
from studysync.services import permissions


def user(email):
    return SimpleNamespace(id=ObjectId(), email=email)


def plan_for(creator, shares=(), is_public=False):
    return SimpleNamespace(
        created_by=str(creator.id),
        shared_with=list(shares),
        is_public=is_public,
    )


def test_private_plan_is_hidden_from_strangers_and_anonymous():
    owner, stranger = user("owner@example.com"), user("stranger@example.com")
    plan = plan_for(owner)

    assert permissions.can_view(plan, owner)
    assert not permissions.can_view(plan, stranger)
    assert not permissions.can_view(plan, None)


def test_public_plan_is_visible_but_not_editable():
    owner, stranger = user("owner@example.com"), user("stranger@example.com")
    plan = plan_for(owner, is_public=True)

    assert permissions.can_view(plan, None)
    assert permissions.can_view(plan, stranger)
    assert not permissions.can_edit(plan, stranger)


def test_share_matches_by_email_before_registration():
    owner, invitee = user("owner@example.com"), user("Invitee@Example.com")
    plan = plan_for(owner, [SharedWith(email="invitee@example.com", role=ShareRole.VIEWER)])

    assert permissions.can_view(plan, invitee)
    assert permissions.collaborator_role(plan, invitee) == ShareRole.VIEWER


def test_share_matches_by_user_id():
    owner, invitee = user("owner@example.com"), user("new-address@example.com")
    plan = plan_for(
        owner,
        [SharedWith(email="old-address@example.com", role=ShareRole.EDITOR, user_id=str(invitee.id))],
    )

    assert permissions.can_edit(plan, invitee)


def test_viewer_cannot_edit_or_share():
    owner, viewer = user("owner@example.com"), user("viewer@example.com")
    plan = plan_for(owner, [SharedWith(email=viewer.email, role=ShareRole.VIEWER)])

    assert not permissions.can_edit(plan, viewer)
    assert not permissions.can_share(plan, viewer, ShareRole.VIEWER)


def test_editor_shares_up_to_editor():
    owner, editor = user("owner@example.com"), user("editor@example.com")
    plan = plan_for(owner, [SharedWith(email=editor.email, role=ShareRole.EDITOR)])

    assert permissions.can_edit(plan, editor)
    assert permissions.can_share(plan, editor, ShareRole.VIEWER)
    assert permissions.can_share(plan, editor, ShareRole.EDITOR)
    assert not permissions.is_creator(plan, editor)


def test_creator_can_remove_anyone_collaborator_only_self():
    owner = user("owner@example.com")
    alice, bob = user("alice@example.com"), user("bob@example.com")
    alice_entry = SharedWith(email=alice.email, role=ShareRole.EDITOR)
    bob_entry = SharedWith(email=bob.email, role=ShareRole.VIEWER)
    plan = plan_for(owner, [alice_entry, bob_entry])

    assert permissions.can_remove_collaborator(plan, owner, bob_entry)
    assert permissions.can_remove_collaborator(plan, bob, bob_entry)
    assert not permissions.can_remove_collaborator(plan, alice, bob_entry)
    assert not permissions.can_remove_collaborator(plan, user("x@example.com"), bob_entry)
