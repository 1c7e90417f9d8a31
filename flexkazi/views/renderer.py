"""
HTML fragments for the worker dashboard.
Pure functions from in-memory session state to markup; no reads, no decisions.
"""
from datetime import datetime, timezone
from typing import List, Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from flexkazi.models.schemas import Task, TaskCategory, UserStats
from flexkazi.services.session import AppSession

SECTIONS = {
    # section: (bucket attribute, card kind, empty message, icon)
    "priority": ("priority", "priority", "No priority tasks", "star"),
    "assigned": ("assigned", "assigned", "No assigned tasks", "tasks"),
    "in-progress": ("in_progress", "in_progress", "No tasks in progress", "spinner"),
    "completed": ("completed", "completed", "No completed tasks yet", "check-circle"),
    "available": ("available", "available", "No available tasks at the moment", "inbox"),
}


def format_kes(amount) -> str:
    amount = float(amount or 0)
    if amount.is_integer():
        return f"KES {amount:,.0f}"
    return f"KES {amount:,.2f}"


def format_date(timestamp_ms: Optional[int]) -> str:
    if not timestamp_ms:
        return "N/A"
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return f"{dt.day} {dt:%b %Y}"


def category_name(category: Optional[str]) -> str:
    return TaskCategory.DISPLAY_NAMES.get(category or "", category or "Uncategorized")


def initials(name: Optional[str]) -> str:
    letters = "".join(part[0] for part in (name or "").split() if part)
    return letters.upper()[:2] or "FL"


env = Environment(
    loader=PackageLoader("flexkazi", "templates"),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
env.filters["kes"] = format_kes
env.filters["date"] = format_date
env.filters["category_name"] = category_name
env.filters["initials"] = initials


def render_task_card(task: Task, kind: str = "available") -> str:
    return env.get_template("task_card.html").render(task=task, kind=kind)


def render_empty_state(message: str, icon: str = "info-circle") -> str:
    return env.get_template("empty_state.html").render(message=message, icon=icon)


def render_task_list(tasks: List[Task], kind: str, empty_message: str, icon: str = "info-circle") -> str:
    if not tasks:
        return render_empty_state(empty_message, icon)
    return "".join(render_task_card(task, kind) for task in tasks)


def render_stats(stats: UserStats, priority_count: int = 0) -> str:
    return env.get_template("stats.html").render(stats=stats, priority_count=priority_count)


def render_task_details(task: Task) -> str:
    return env.get_template("task_details.html").render(task=task)


def render_workspace(task: Task) -> str:
    return env.get_template("workspace.html").render(task=task)


def render_profile_header(session: AppSession) -> str:
    return env.get_template("profile_header.html").render(
        profile=session.profile,
        stats=session.dashboard.stats if session.dashboard else UserStats(),
    )


def render_section(section: str, session: AppSession) -> str:
    if section == "stats":
        buckets = session.dashboard.buckets if session.dashboard else None
        stats = session.dashboard.stats if session.dashboard else UserStats()
        return render_stats(stats, priority_count=len(buckets.priority) if buckets else 0)
    if section == "profile":
        return render_profile_header(session)
    if section == "recent":
        recent = session.dashboard.recent if session.dashboard else []
        return render_task_list(recent, "completed", "No recent tasks", "history")

    attribute, kind, empty_message, icon = SECTIONS[section]
    tasks = getattr(session.dashboard.buckets, attribute) if session.dashboard else []
    return render_task_list(tasks, kind, empty_message, icon)
