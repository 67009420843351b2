# src/phitodo/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable, Sequence
from datetime import date
from typing import cast

from ..core.errors import FetchError, NotFoundError, friendly_fetch_error_message
from ..core.state import AppState
from ..sync.reconciler import SyncSummary
from ..tasks import task_api
from ..tasks.task_models import Task, TaskStatus
from ..views import filters
from ..views.time_report import format_duration, format_hours
from .bootstrap import build_fetchers

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /sync, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("  /exit - Quit.")
        return "\n".join(lines)


registry = CommandRegistry()


def _today() -> date:
    return date.today()


def format_task(task: Task) -> str:
    done = "x" if task.is_completed else " "
    line = f"[{done}] #{task.id} {task.kind.symbol} {task.priority.symbol} {task.title}"
    if task.due_date is not None:
        line += f" (due {task.due_date.isoformat()})"
    if task.tags:
        line += " " + " ".join(f"#{t}" for t in sorted(task.tags))
    return line


def _format_list(title: str, tasks: Sequence[Task]) -> str:
    if not tasks:
        return f"{title}: nothing here."
    lines = [f"{title} ({len(tasks)}):"]
    lines.extend(f"  {format_task(t)}" for t in tasks)
    return "\n".join(lines)


def _parse_id(args: list[str]) -> int | None:
    if not args:
        return None
    with contextlib.suppress(ValueError):
        return int(args[0].lstrip("#"))
    return None


def format_summary(summary: SyncSummary) -> str:
    lines = [
        "Sync finished: "
        f"{summary.created} created, {summary.updated} updated, "
        f"{summary.auto_completed} auto-completed, {summary.unchanged} unchanged"
    ]
    if summary.skipped:
        lines.append(f"  Skipped (untracked or already closed): {summary.skipped}")
    if summary.retired:
        lines.append(f"  Retired from untracked repos: {summary.retired}")
    for err in summary.errors:
        lines.append(f"  [WARN] {friendly_fetch_error_message(FetchError(err.scope, err.message, kind=err.kind))}")
    return "\n".join(lines)


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    counts = filters.view_counts(state.task_store.query(), _today())
    repos = ", ".join(getattr(settings, "github_repos", None) or []) or "(all)"
    github = "configured" if getattr(settings, "github_token", None) else "not configured"
    toggl = "configured" if getattr(settings, "toggl_token", None) else "not configured"

    last = "never"
    if state.last_summary is not None:
        s = state.last_summary
        last = f"{s.changed} changes, {len(s.errors)} errors"

    return (
        "Status:\n"
        f"  GitHub: {github} (tracked repos: {repos})\n"
        f"  Toggl: {toggl}\n"
        f"  Last sync: {last}\n"
        f"  Inbox {counts.inbox} | Today {counts.today} | Upcoming {counts.upcoming} | "
        f"Anytime {counts.anytime} | Review {counts.review} | GitHub {counts.github} | "
        f"Completed {counts.completed}"
    )


def cmd_sync(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /sync -> fetch GitHub/Toggl and reconcile into the task store.

    Ctrl+C while fetching cancels the cycle; the apply phase always finishes.
    """
    fetchers = build_fetchers(state, today=_today())
    if not fetchers:
        return "Nothing to sync: set PHITODO_GITHUB_TOKEN and/or PHITODO_TOGGL_TOKEN."

    if emit:
        emit(f"[SYNC] Fetching {len(fetchers)} categories...")

    try:
        summary = asyncio.run(state.reconciler.sync(fetchers))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Sync interrupted by user.")
        return "Sync interrupted."

    state.last_summary = summary
    if summary.time_report is not None:
        state.time_report = summary.time_report
    return format_summary(summary)


def cmd_inbox(state: AppState, args: list[str]) -> str:
    tasks = filters.sort_by_priority(filters.filter_inbox(state.task_store.query()))
    return _format_list("Inbox", tasks)


def cmd_today(state: AppState, args: list[str]) -> str:
    tasks = filters.sort_by_due_date(filters.filter_today(state.task_store.query(), _today()))
    return _format_list("Today", tasks)


def cmd_upcoming(state: AppState, args: list[str]) -> str:
    tasks = filters.filter_upcoming(state.task_store.query(), _today())
    groups = filters.group_by_date(tasks)
    if not groups:
        return "Upcoming: nothing here."
    lines = [f"Upcoming ({len(tasks)}):"]
    for day, group in groups:
        lines.append(f"  {day.isoformat() if day else 'No date'}")
        lines.extend(f"    {format_task(t)}" for t in group)
    return "\n".join(lines)


def cmd_anytime(state: AppState, args: list[str]) -> str:
    return _format_list("Anytime", filters.filter_anytime(state.task_store.query()))


def cmd_completed(state: AppState, args: list[str]) -> str:
    return _format_list("Completed", filters.filter_completed(state.task_store.query()))


def cmd_review(state: AppState, args: list[str]) -> str:
    tasks = filters.sort_by_due_date(filters.filter_review(state.task_store.query(), _today()))
    return _format_list("Review (overdue)", tasks)


def cmd_github(state: AppState, args: list[str]) -> str:
    open_tasks = [t for t in state.task_store.query() if not t.is_completed]
    cols = filters.github_columns(open_tasks)
    return "\n".join(
        [
            _format_list("Review requests", cols.reviews),
            _format_list("My pull requests", cols.pull_requests),
            _format_list("Assigned issues", cols.issues),
        ]
    )


def cmd_time(state: AppState, args: list[str]) -> str:
    report = state.time_report
    if report is None:
        return "No time data yet. Configure PHITODO_TOGGL_TOKEN and run /sync."

    days = int(getattr(state.settings, "toggl_days", 7))
    lines = [f"Time tracked (last {days} days): {format_hours(report.total_seconds)}"]
    for day, seconds in report.daily_totals(today=_today(), days=days):
        lines.append(f"  {day.isoformat()}  {format_duration(seconds)}")

    by_project = report.duration_by_project()
    if by_project:
        lines.append("By project:")
        lines.extend(f"  {name}: {format_hours(seconds)}" for name, seconds in by_project)
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title words> [due:YYYY-MM-DD] [prio:<level>] [#tag ...]
    """
    title_parts: list[str] = []
    due: date | None = None
    priority = task_api.parse_priority("none")
    tags: set[str] = set()

    try:
        for token in args:
            if token.startswith("due:"):
                due = date.fromisoformat(token[4:])
            elif token.startswith("prio:"):
                priority = task_api.parse_priority(token[5:])
            elif token.startswith("#") and len(token) > 1:
                tags.add(token[1:])
            else:
                title_parts.append(token)
    except ValueError as e:
        return f"Invalid argument: {e}"

    title = " ".join(title_parts).strip()
    if not title:
        return "Usage: /add <title> [due:YYYY-MM-DD] [prio:low|medium|high] [#tag]"

    task_id = task_api.add_task(state, title, due_date=due, priority=priority, tags=tags)
    return f"Added #{task_id}: {title}"


def cmd_done(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /done <id>"
    try:
        task = task_api.set_status(state, task_id, TaskStatus.COMPLETED)
    except NotFoundError:
        return f"Task #{task_id} no longer exists."
    return f"Completed #{task.id}: {task.title}"


def cmd_reopen(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /reopen <id>"
    try:
        task = task_api.set_status(state, task_id, TaskStatus.INBOX)
    except NotFoundError:
        return f"Task #{task_id} no longer exists."
    return f"Reopened #{task.id}: {task.title}"


def cmd_toggle(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /toggle <id>"
    try:
        task = task_api.toggle_completed(state, task_id)
    except NotFoundError:
        return f"Task #{task_id} no longer exists."
    return f"#{task.id} is now {task.status.value}."


def cmd_prio(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args)
    if task_id is None or len(args) < 2:
        return "Usage: /prio <id> none|low|medium|high"
    try:
        priority = task_api.parse_priority(args[1])
        task = task_api.set_priority(state, task_id, priority)
    except ValueError as e:
        return str(e)
    except NotFoundError:
        return f"Task #{task_id} no longer exists."
    return f"Priority of #{task.id} set to {task.priority.value}."


def cmd_delete(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /delete <id>"
    try:
        task_api.delete_task(state, task_id)
    except NotFoundError:
        return f"Task #{task_id} no longer exists."
    return f"Deleted #{task_id}."


def cmd_projects(state: AppState, args: list[str]) -> str:
    projects = state.task_store.list_projects()
    if not projects:
        return "No projects yet."
    tasks = state.task_store.query()
    lines = ["Projects:"]
    for p in projects:
        n_open = len(filters.filter_by_project(tasks, p.id))
        src = f" <- {p.source_repo}" if p.source_repo else ""
        lines.append(f"  #{p.id} {p.name} ({n_open} open){src}")
    return "\n".join(lines)


def cmd_search(state: AppState, args: list[str]) -> str:
    query = " ".join(args)
    if not query.strip():
        return "Usage: /search <text>"
    return _format_list(f"Search '{query}'", filters.search_tasks(state.task_store.query(), query))


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show sources, last sync and view counts.")
registry.register("sync", cmd_sync, help_text="Fetch GitHub/Toggl and reconcile tasks.", aliases=["refresh"])
registry.register("inbox", cmd_inbox, help_text="Tasks in the inbox.")
registry.register("today", cmd_today, help_text="Due today or overdue.")
registry.register("upcoming", cmd_upcoming, help_text="Due after today, grouped by date.")
registry.register("anytime", cmd_anytime, help_text="Open tasks without a due date.")
registry.register("completed", cmd_completed, help_text="Completed tasks, most recent first.")
registry.register("review", cmd_review, help_text="Overdue tasks only.")
registry.register("github", cmd_github, help_text="Open reviews, pull requests and issues.", aliases=["gh"])
registry.register("time", cmd_time, help_text="Toggl time report from the last sync.")
registry.register("add", cmd_add, help_text="Add a task: /add <title> [due:YYYY-MM-DD] [prio:high] [#tag].")
registry.register("done", cmd_done, help_text="Complete a task: /done <id>.")
registry.register("reopen", cmd_reopen, help_text="Move a task back to the inbox: /reopen <id>.")
registry.register("toggle", cmd_toggle, help_text="Complete or reopen a task: /toggle <id>.")
registry.register("prio", cmd_prio, help_text="Set priority: /prio <id> none|low|medium|high.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("projects", cmd_projects, help_text="List projects.")
registry.register("search", cmd_search, help_text="Search titles and notes: /search <text>.")
