import pytest

from studysync.errors import ExternalFetchError, PermissionDeniedError, ValidationError
from studysync.models.enums import ResourceType, ShareRole
from studysync.models.resource import Resource
from studysync.models.study_plan import SharedWith, StudyPlan
from studysync.services.resource_service import ResourceService


def test_pdf_defaults_minutes_per_page():
    built = ResourceService.build_metadata(
        ResourceType.PDF, {"url": "https://x.test/a.pdf", "title": "Notes", "pages": 40}
    )
    assert built == {"title": "Notes", "metadata": {"pages": 40, "mins_per_page": 3}}


@pytest.mark.parametrize(
    "rtype,data",
    [
        (ResourceType.PDF, {"pages": 10}),
        (ResourceType.PDF, {"title": "Notes"}),
        (ResourceType.PDF, {"title": "Notes", "pages": 0}),
        (ResourceType.ARTICLE, {"title": "Post"}),
        (ResourceType.ARTICLE, {"estimated_mins": 5}),
    ],
)
def test_missing_required_fields(rtype, data):
    with pytest.raises(ValidationError):
        ResourceService.build_metadata(rtype, {"url": "https://x.test/r", **data})


def test_link_title_defaults_to_url():
    built = ResourceService.build_metadata(
        ResourceType.CUSTOM_LINK, {"url": "https://x.test/page"}
    )
    assert built == {"title": "https://x.test/page", "metadata": {}}


def test_unsupported_type():
    with pytest.raises(ValidationError, match="Unsupported resource type"):
        ResourceService.parse_type("podcast")


async def _plan(owner, **kwargs):
    plan = StudyPlan(
        title="Plan",
        short_description="Short",
        course_code="CS-101",
        created_by=str(owner.id),
        **kwargs,
    )
    await plan.insert()
    return plan


async def test_same_url_is_reused(make_user):
    user = await make_user()
    data = {"type": "article", "url": "https://blog.test/post", "title": "Post", "estimated_mins": 12}

    first = await ResourceService.normalize(data, user)
    second = await ResourceService.normalize(data, user)

    assert first[0].is_new is True
    assert second[0].is_new is False
    assert first[0].resource.id == second[0].resource.id
    assert await Resource.find({"url": "https://blog.test/post"}).count() == 1


async def test_video_url_is_canonical(make_user, fake_youtube):
    fake_youtube.add_video("dQw4w9WgXcQ", "Never", duration=4)
    user = await make_user()

    [result] = await ResourceService.normalize(
        {"type": "youtube-video", "url": "https://youtu.be/dQw4w9WgXcQ"}, user
    )
    [again] = await ResourceService.normalize(
        {"type": "youtube-video", "url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ"}, user
    )

    assert result.resource.url == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    assert result.resource.metadata["duration"] == 4
    assert again.is_new is False
    # The second lookup hits the stored copy without calling the API
    assert len(fake_youtube.calls) == 1


async def test_unknown_video_fails(make_user, fake_youtube):
    user = await make_user()

    with pytest.raises(ExternalFetchError):
        await ResourceService.normalize(
            {"type": "youtube-video", "url": "https://youtu.be/aaaaaaaaaaa"}, user
        )


async def test_playlist_import_keeps_order_and_reuses_existing(make_user, fake_youtube):
    for vid in ("v1aaaaaaaaa", "v2aaaaaaaaa", "v3aaaaaaaaa"):
        fake_youtube.add_video(vid)
    fake_youtube.playlists["PLx"] = ["v1aaaaaaaaa", "v2aaaaaaaaa", "v3aaaaaaaaa"]
    user = await make_user()

    await ResourceService.normalize(
        {"type": "youtube-video", "url": "https://youtu.be/v2aaaaaaaaa"}, user
    )
    results = await ResourceService.normalize(
        {"type": "youtube-playlist", "url": "https://www.youtube.com/playlist?list=PLx"}, user
    )

    assert [r.resource.metadata["video_id"] for r in results] == [
        "v1aaaaaaaaa",
        "v2aaaaaaaaa",
        "v3aaaaaaaaa",
    ]
    assert [r.is_new for r in results] == [True, False, True]
    assert all(r.resource.id is not None for r in results)
    assert await Resource.find_all().count() == 3


async def test_playlist_import_credits_videos_stored_by_a_concurrent_import(make_user, fake_youtube, monkeypatch):
    for vid in ("v1aaaaaaaaa", "v2aaaaaaaaa", "v3aaaaaaaaa"):
        fake_youtube.add_video(vid)
    fake_youtube.playlists["PLrace"] = ["v1aaaaaaaaa", "v2aaaaaaaaa", "v3aaaaaaaaa"]
    user = await make_user()

    original = Resource.insert_many
    competing = fake_youtube.videos["v2aaaaaaaaa"]

    async def insert_after_competitor(documents, **kwargs):
        # Another import stores v2 between our lookup and our insert
        await Resource(
            type=ResourceType.YOUTUBE_VIDEO,
            title=competing["title"],
            url=competing["url"],
            metadata={"duration": competing["duration"], "video_id": "v2aaaaaaaaa"},
        ).insert()
        return await original(documents, **kwargs)

    monkeypatch.setattr(Resource, "insert_many", insert_after_competitor)

    results = await ResourceService.normalize(
        {"type": "youtube-playlist", "url": "https://www.youtube.com/playlist?list=PLrace"}, user
    )

    assert [r.resource.metadata["video_id"] for r in results] == [
        "v1aaaaaaaaa",
        "v2aaaaaaaaa",
        "v3aaaaaaaaa",
    ]
    assert [r.is_new for r in results] == [True, False, True]
    assert await Resource.find_all().count() == 3


async def test_failed_playlist_inserts_nothing(make_user, fake_youtube):
    user = await make_user()

    with pytest.raises(ExternalFetchError):
        await ResourceService.normalize(
            {"type": "youtube-playlist", "url": "https://www.youtube.com/playlist?list=missing"},
            user,
        )

    assert await Resource.find_all().count() == 0


async def test_create_attaches_to_plan_without_duplicates(make_user):
    owner = await make_user()
    plan = await _plan(owner)
    data = {"type": "pdf", "url": "https://x.test/book.pdf", "title": "Book", "pages": 10}

    created = await ResourceService.create_resources(data, owner, str(plan.id))
    await ResourceService.create_resources(data, owner, str(plan.id))

    stored = await StudyPlan.get(plan.id)
    assert stored.resource_ids == [created["resources"][0]["id"]]
    assert stored.last_modified_by == str(owner.id)
    assert created["created_count"] == 1


async def test_viewer_cannot_add_resources(make_user):
    owner = await make_user()
    viewer = await make_user("viewer@example.com")
    plan = await _plan(owner, shared_with=[SharedWith(email=viewer.email, role=ShareRole.VIEWER)])

    with pytest.raises(PermissionDeniedError):
        await ResourceService.create_resources(
            {"type": "custom-link", "url": "https://x.test/link"}, viewer, str(plan.id)
        )
    assert await Resource.find_all().count() == 0


async def test_editor_edits_shared_resource(make_user):
    owner = await make_user()
    editor = await make_user("editor@example.com")
    plan = await _plan(owner, shared_with=[SharedWith(email=editor.email, role=ShareRole.EDITOR)])
    created = await ResourceService.create_resources(
        {"type": "article", "url": "https://x.test/a", "title": "A", "estimated_mins": 5},
        owner,
        str(plan.id),
    )
    rid = created["resources"][0]["id"]

    result = await ResourceService.update_resource(
        rid, {"title": "Renamed", "metadata": {"estimated_mins": 8}, "url": "https://evil.test"}, editor
    )

    assert result["resource"]["title"] == "Renamed"
    assert result["resource"]["metadata"] == {"estimated_mins": 8}
    assert result["resource"]["url"] == "https://x.test/a"


async def test_delete_detaches_then_removes_unreferenced(make_user):
    owner = await make_user()
    plan = await _plan(owner)
    created = await ResourceService.create_resources(
        {"type": "custom-link", "url": "https://x.test/l"}, owner, str(plan.id)
    )
    rid = created["resources"][0]["id"]

    result = await ResourceService.delete_resource(rid, owner, str(plan.id))

    assert result["deleted"] is True
    assert (await StudyPlan.get(plan.id)).resource_ids == []
    assert await Resource.find_all().count() == 0


async def test_bulk_get_follows_requested_order(make_user):
    user = await make_user()
    ids = []
    for n in range(3):
        [r] = await ResourceService.normalize(
            {"type": "article", "url": f"https://x.test/{n}", "title": f"T{n}", "estimated_mins": n + 1},
            user,
        )
        ids.append(str(r.resource.id))

    results = await ResourceService.bulk_get([ids[2], ids[0], "0" * 24, ids[1]])

    assert [r["id"] for r in results] == [ids[2], ids[0], ids[1]]
    assert [r["total_time"] for r in results] == [3, 1, 2]
