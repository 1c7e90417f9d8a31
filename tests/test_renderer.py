from flexkazi.core.security import Identity
from flexkazi.models.schemas import Dashboard, UserProfile, UserStats
from flexkazi.services.bucketing import bucket_tasks, parse_tasks
from flexkazi.services.session import AppSession
from flexkazi.views import renderer

from tests.conftest import make_task


def _session(**records):
    buckets = bucket_tasks(parse_tasks(records), "u1")
    profile = UserProfile()
    profile.personal.full_name = "Amina Otieno"
    return AppSession(
        identity=Identity(uid="u1"),
        profile=profile,
        dashboard=Dashboard(buckets=buckets, stats=UserStats(tasks_completed=3, total_earned=4500, average_rating=4.5)),
    )


def test_formatters():
    assert renderer.format_kes(1000) == "KES 1,000"
    assert renderer.format_kes(1250.5) == "KES 1,250.50"
    assert renderer.format_kes(None) == "KES 0"
    assert renderer.format_date(None) == "N/A"
    assert renderer.format_date(1760659200000) == "17 Oct 2025"
    assert renderer.category_name("data") == "Data Entry"
    assert renderer.category_name(None) == "Uncategorized"
    assert renderer.initials("Amina Wanjiru Otieno") == "AW"
    assert renderer.initials("") == "FL"


def test_available_card_offers_accept():
    html = renderer.render_section("available", _session(t1=make_task("t1", budget=1000)))
    assert 'data-task-id="t1"' in html
    assert "Accept Task" in html
    assert "KES 1,000" in html
    assert "Advert Generation" in html


def test_priority_card_is_highlighted():
    html = renderer.render_section("priority", _session(t1=make_task("t1", assigned_to="u1", priority_match=True)))
    assert "task-card priority" in html
    assert "Start Task" in html


def test_empty_section_shows_empty_state():
    html = renderer.render_section("in-progress", _session())
    assert "No tasks in progress" in html


def test_completed_card_marks_awaiting_review():
    html = renderer.render_section("completed", _session(t1=make_task("t1", assigned_to="u1", status="submitted")))
    assert "Awaiting Review" in html


def test_task_text_is_escaped():
    record = make_task("t1")
    record["task_details"]["title"] = "<script>alert(1)</script>"
    html = renderer.render_section("available", _session(t1=record))
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_stats_and_profile_sections():
    session = _session()
    stats_html = renderer.render_section("stats", session)
    assert "KES 4,500" in stats_html
    assert "4.5" in stats_html

    profile_html = renderer.render_section("profile", session)
    assert "Amina Otieno" in profile_html
    assert "AO" in profile_html


def test_workspace_shows_task_details():
    task = parse_tasks({"t1": make_task("t1", category="social", budget=2500)})[0]
    html = renderer.render_workspace(task)
    assert "Task t1" in html
    assert "KES 2,500" in html
    assert "Social Media Management" in html
