import pytest

from studysync.services.progress import percent, resource_duration, summarize, total_time


def pdf(rid, pages, mins_per_page=3):
    return {"id": rid, "type": "pdf", "metadata": {"pages": pages, "mins_per_page": mins_per_page}}


def article(rid, mins):
    return {"id": rid, "type": "article", "metadata": {"estimated_mins": mins}}


def video(rid, duration):
    return {"id": rid, "type": "youtube-video", "metadata": {"duration": duration}}


@pytest.mark.parametrize(
    "resource,expected",
    [
        (video("v", 42), 42),
        (pdf("p", 100, 2), 200),
        (pdf("p", 10, 1.5), 15),
        (article("a", 15), 15),
        ({"id": "d", "type": "google-drive", "metadata": {"estimated_mins": 30}}, 30),
        ({"id": "c", "type": "custom-link", "metadata": {}}, 0),
        ({"id": "x", "type": "podcast", "metadata": {"estimated_mins": 30}}, 0),
        ({"id": "p", "type": "pdf", "metadata": {"pages": 12}}, 0),
        ({"id": "v", "type": "youtube-video", "metadata": {"duration": "ten"}}, 0),
    ],
)
def test_resource_duration(resource, expected):
    assert resource_duration(resource) == expected


def test_percent_rounds_half_up():
    assert percent(1, 8) == 13  # 12.5
    assert percent(1, 3) == 33
    assert percent(2, 3) == 67
    assert percent(15, 215) == 7


def test_percent_of_empty_whole_is_zero():
    assert percent(0, 0) == 0
    assert percent(5, 0) == 0


def test_summary_for_pdf_and_article():
    resources = [pdf("p1", 100, 2), article("a1", 15)]

    summary = summarize(resources, {"a1"})

    assert summary.total_resources == 2
    assert summary.completed_resources == 1
    assert summary.total_time == 215
    assert summary.completed_time == 15
    assert summary.remaining_time == 200
    assert summary.resource_percent == 50
    assert summary.time_percent == 7


def test_summary_of_empty_resource_set():
    summary = summarize([], set())

    assert summary.to_dict() == {
        "total_resources": 0,
        "completed_resources": 0,
        "total_time": 0,
        "completed_time": 0,
        "remaining_time": 0,
        "resource_percent": 0,
        "time_percent": 0,
    }


def test_completed_ids_outside_the_set_are_ignored():
    summary = summarize([video("v1", 30)], {"elsewhere"})

    assert summary.completed_resources == 0
    assert summary.time_percent == 0


def test_total_time_keeps_fractional_minutes():
    assert total_time([pdf("p", 3, 1.5), article("a", 1)]) == 5.5
