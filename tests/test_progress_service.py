import uuid
from datetime import datetime, timedelta, timezone

import pytest

from studysync.errors import NotFoundError, PermissionDeniedError, ValidationError
from studysync.models.instance import StudyPlanInstance
from studysync.models.user_progress import UserProgress
from studysync.services.progress_service import ProgressService
from studysync.services.resource_service import ResourceService
from studysync.utils import as_utc

START = datetime(2026, 1, 5, tzinfo=timezone.utc)


async def _setup(user, count=2):
    ids = []
    for n in range(count):
        [r] = await ResourceService.normalize(
            {"type": "article", "url": f"https://x.test/{uuid.uuid4().hex}", "title": f"T{n}", "estimated_mins": 10},
            user,
        )
        ids.append(str(r.resource.id))
    instance = StudyPlanInstance(
        user_id=str(user.id),
        study_plan_id="0" * 24,
        snapshot_resource_ids=ids,
        start_date=START,
        end_date=START + timedelta(days=7),
    )
    await instance.insert()
    return str(instance.id), ids


async def test_toggle_true_false_true_restamps_completed_at(make_user):
    user = await make_user()
    instance_id, (rid, _) = await _setup(user)

    first = await ProgressService.toggle(
        {"instance_id": instance_id, "resource_id": rid, "completed": True}, user
    )
    assert first["created"] is True
    first_at = first["progress"]["completed_at"]

    cleared = await ProgressService.toggle(
        {"instance_id": instance_id, "resource_id": rid, "completed": False}, user
    )
    assert cleared["created"] is False
    assert cleared["progress"]["completed"] is False
    assert cleared["progress"]["completed_at"] is None

    again = await ProgressService.toggle(
        {"instance_id": instance_id, "resource_id": rid, "completed": True}, user
    )
    assert again["progress"]["completed"] is True
    assert as_utc(again["progress"]["completed_at"]) >= as_utc(first_at)
    assert await UserProgress.find({"user_id": str(user.id)}).count() == 1


async def test_toggle_mirrors_into_originating_instance_only(make_user):
    user = await make_user()
    instance_id, (rid, _) = await _setup(user)

    await ProgressService.toggle({"instance_id": instance_id, "resource_id": rid, "completed": True}, user)
    assert (await StudyPlanInstance.get(instance_id)).completed_resources == [rid]

    await ProgressService.toggle({"instance_id": instance_id, "resource_id": rid, "completed": False}, user)
    assert (await StudyPlanInstance.get(instance_id)).completed_resources == []


async def test_partial_progress_without_completion(make_user):
    user = await make_user()
    instance_id, (rid, _) = await _setup(user)

    result = await ProgressService.toggle(
        {"instance_id": instance_id, "resource_id": rid, "progress": 40, "time_spent": 12, "notes": "<b>ch. 2</b>"},
        user,
    )

    row = result["progress"]
    assert row["completed"] is False
    assert row["progress"] == 40
    assert row["time_spent"] == 12
    assert row["notes"] == "ch. 2"


async def test_toggle_requires_instance_owner(make_user):
    owner, other = await make_user(), await make_user()
    instance_id, (rid, _) = await _setup(owner)

    with pytest.raises(PermissionDeniedError):
        await ProgressService.toggle({"instance_id": instance_id, "resource_id": rid, "completed": True}, other)


async def test_toggle_validates_ids(make_user):
    user = await make_user()
    instance_id, _ = await _setup(user)

    with pytest.raises(ValidationError):
        await ProgressService.toggle({"instance_id": "nope", "resource_id": "nope"}, user)
    with pytest.raises(NotFoundError):
        await ProgressService.toggle({"instance_id": instance_id, "resource_id": "f" * 24}, user)


async def test_bulk_reports_per_item(make_user):
    user = await make_user()
    instance_id, ids = await _setup(user)

    result = await ProgressService.bulk_toggle(ids + ["bad-id"], True, user, instance_id)

    assert result["succeeded"] == 2
    assert result["failed"] == 1
    assert result["results"][-1] == {"resource_id": "bad-id", "success": False, "error": "Invalid resource ID"}
    assert sorted((await StudyPlanInstance.get(instance_id)).completed_resources) == sorted(ids)


async def test_check_and_reset(make_user):
    user = await make_user()
    instance_id, (done, pending) = await _setup(user)
    await ProgressService.toggle({"instance_id": instance_id, "resource_id": done, "completed": True}, user)

    status = await ProgressService.check([done, pending], user)
    assert status[done]["completed"] is True
    assert status[done]["completed_at"] is not None
    assert status[pending] == {"completed": False, "completed_at": None}

    result = await ProgressService.reset_progress(user)
    assert result["deleted"] == 1
    assert (await ProgressService.check([done], user))[done]["completed"] is False
    assert (await StudyPlanInstance.get(instance_id)).completed_resources == []


async def test_list_by_instance_uses_its_resource_set(make_user):
    user = await make_user()
    instance_id, ids = await _setup(user)
    other_instance, other_ids = await _setup(user, count=1)
    await ProgressService.bulk_toggle(ids + other_ids, True, user)

    listed = await ProgressService.list_progress(user, instance_id=instance_id)

    assert sorted(r["resource_id"] for r in listed["progress"]) == sorted(ids)
