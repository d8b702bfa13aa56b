from types import SimpleNamespace

import jwt
from bson import ObjectId

from studysync.config import settings
from studysync.models.enums import UserRole
from studysync.services.resource_service import ResourceService
from studysync.services.study_plan_service import StudyPlanService


def _anyone():
    return SimpleNamespace(id=ObjectId(), email="anyone@example.com", is_admin=False)


# Requests that never reach the database


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


async def test_missing_token_is_401(client):
    response = await client.get("/api/instances")

    assert response.status_code == 401
    assert response.json() == {"error": "No token provided"}


async def test_bad_token_is_401(client):
    token = jwt.encode({"sub": "u1", "exp": 1}, settings.AUTH_TOKEN_SECRET, algorithm="HS256")

    response = await client.get("/api/instances", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid or expired token"}


async def test_cron_rejects_wrong_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

    missing = await client.get("/api/cron/reminders")
    wrong = await client.get("/api/cron/reminders", headers={"Authorization": "Bearer nope"})

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Unauthorized"}


async def test_body_validation_is_400(client, login):
    login(_anyone())

    response = await client.post("/api/study-plans", json={"title": "No description"})

    assert response.status_code == 400
    assert "error" in response.json()


async def test_check_requires_resource_ids(client, login):
    login(_anyone())

    missing = await client.get("/api/user-progress/check")
    garbage = await client.get("/api/user-progress/check", params={"resourceIds": "x,y"})

    assert missing.status_code == 400
    assert garbage.json() == {"error": "No valid resource IDs provided"}


async def test_unexpected_errors_hide_their_details(client, login, monkeypatch):
    login(_anyone())

    async def broken(*args, **kwargs):
        raise RuntimeError("connection to mongo-prod-7.internal:27017 refused")

    monkeypatch.setattr(ResourceService, "create_resources", staticmethod(broken))
    monkeypatch.setattr(StudyPlanService, "create_plan", staticmethod(broken))

    resource = await client.post("/api/resources", json={"type": "article", "url": "https://x.test/a"})
    plan = await client.post(
        "/api/study-plans",
        json={"title": "Broken", "short_description": "Down", "course_code": "X-0"},
    )

    assert resource.status_code == 500
    assert resource.json() == {"error": "Failed to create resource"}
    assert plan.status_code == 500
    assert "mongo-prod-7" not in plan.text


# End to end against the database


async def test_plan_instance_progress_flow(client, login, make_user, outbox):
    owner = await make_user("owner@example.com")
    login(owner)

    plan = await client.post(
        "/api/study-plans",
        json={"title": "Statistics", "short_description": "Intro", "course_code": "STAT-100"},
    )
    assert plan.status_code == 201
    plan_id = plan.json()["study_plan"]["id"]

    pdf = await client.post(
        "/api/resources",
        json={"type": "pdf", "url": "https://x.test/s.pdf", "title": "Reader", "pages": 100,
              "mins_per_page": 2, "study_plan_id": plan_id},
    )
    article = await client.post(
        "/api/resources",
        json={"type": "article", "url": "https://x.test/s", "title": "Post", "estimated_mins": 15,
              "study_plan_id": plan_id},
    )
    assert pdf.status_code == 201
    article_id = article.json()["resources"][0]["id"]

    instance = await client.post(
        "/api/instances",
        json={"study_plan_id": plan_id, "start_date": "2026-02-01T00:00:00Z", "end_date": "2026-03-01T00:00:00Z"},
    )
    assert instance.status_code == 201
    instance_id = instance.json()["instance"]["id"]

    created = await client.post(
        "/api/user-progress",
        json={"instance_id": instance_id, "resource_id": article_id, "completed": True},
    )
    updated = await client.post(
        "/api/user-progress",
        json={"instance_id": instance_id, "resource_id": article_id, "completed": True},
    )
    assert created.status_code == 201
    assert updated.status_code == 200

    details = (await client.get(f"/api/instances/{instance_id}")).json()
    assert details["total_time"] == 215
    assert details["completed_time"] == 15
    assert details["time_percent"] == 7

    listed = (await client.get("/api/study-plans", params={"view": "my"})).json()
    assert listed["plans"][0]["total_time"] == 215
    assert listed["plans"][0]["instance_count"] == 1


async def test_private_plan_access(client, login, make_user):
    owner, stranger = await make_user(), await make_user()
    login(owner)
    plan_id = (
        await client.post(
            "/api/study-plans",
            json={"title": "Private", "short_description": "Mine", "course_code": "X-1"},
        )
    ).json()["study_plan"]["id"]

    login(stranger)
    denied = await client.get(f"/api/study-plans/{plan_id}")
    missing = await client.get(f"/api/study-plans/{'a' * 24}")
    malformed = await client.get("/api/study-plans/not-an-id")

    assert denied.status_code == 403
    assert missing.status_code == 404
    assert missing.json() == {"error": "Study plan not found"}
    assert malformed.status_code == 400


async def test_public_plan_counts_views(client, login, make_user):
    owner = await make_user()
    login(owner)
    plan_id = (
        await client.post(
            "/api/study-plans",
            json={"title": "Open", "short_description": "Shared", "course_code": "X-2", "is_public": True},
        )
    ).json()["study_plan"]["id"]

    await client.get(f"/api/study-plans/{plan_id}")
    second = (await client.get(f"/api/study-plans/{plan_id}")).json()

    assert second["view_count"] == 2
    assert second["is_creator"] is True


async def test_bulk_resources_route(client, login, make_user):
    user = await make_user()
    login(user)
    ids = []
    for n in range(2):
        response = await client.post(
            "/api/resources",
            json={"type": "custom-link", "url": f"https://x.test/link-{n}", "estimated_mins": 5},
        )
        ids.append(response.json()["resources"][0]["id"])

    response = await client.get("/api/resources/bulk", params={"ids": f"{ids[1]},{ids[0]}"})

    assert response.status_code == 200
    assert [r["id"] for r in response.json()["resources"]] == [ids[1], ids[0]]


async def test_notification_settings(client, login, make_user):
    user = await make_user()
    login(user)

    empty = await client.put("/api/notifications/settings", json={})
    updated = await client.put(
        "/api/notifications/settings",
        json={"email_reminders": False, "custom_reminders": [{"value": 2, "unit": "hours"}]},
    )

    assert empty.status_code == 400
    assert updated.status_code == 200
    settings_body = updated.json()["settings"]
    assert settings_body["email_reminders"] is False
    assert settings_body["custom_reminders"] == [{"id": "2-hours", "value": 2, "unit": "hours"}]


async def test_reviews_listing_is_admin_only(client, login, make_user):
    user = await make_user("reviewer@example.com")
    admin = await make_user(role=UserRole.ADMIN)

    login(user)
    created = await client.post("/api/reviews", json={"rating": 5, "comment": "Great planner"})
    bad = await client.post("/api/reviews", json={"rating": 9, "comment": "Too much"})
    forbidden = await client.get("/api/reviews")

    login(admin)
    listed = await client.get("/api/reviews")

    assert created.status_code == 201
    assert bad.status_code == 400
    assert forbidden.status_code == 403
    [review] = listed.json()["reviews"]
    assert review["user"]["email"] == "reviewer@example.com"


async def test_profile_update(client, login, make_user):
    user = await make_user()
    login(user)

    response = await client.put("/api/users/me", json={"display_name": " Sam ", "role": "admin"})

    assert response.status_code == 200
    assert response.json()["user"]["display_name"] == "Sam"
    assert response.json()["user"]["role"] == "user"
