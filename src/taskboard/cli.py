from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from rich.console import Console
from rich.table import Table

from .container import Board
from .domain.models import Task
from .errors import TaskboardError, ValidationError
from .logging_utils import configure_logging
from .tasks import TASK_SORTS
from .utils import format_duration
from .workflow import board_to_dict


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _board(args: argparse.Namespace) -> Board:
    board = Board(_resolve_project_dir(args.project_dir))
    configure_logging(args.log_level or board.settings.log_level)
    return board


def _user(args: argparse.Namespace) -> str:
    if not args.user:
        raise ValidationError("No user given: pass --user or set TASKBOARD_USER")
    return args.user


def _emit(payload: Any) -> int:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + '\n')
    return 0


def _parse_when(raw: str) -> datetime:
    try:
        return datetime.fromisoformat(raw.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f"Invalid timestamp '{raw}'. Expected ISO-8601.") from None


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def _server(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("Install server extras: pip install 'taskboard[server]'\n")
        return 1

    from .server import create_app

    board = _board(args)
    app = create_app(board=board)
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


_STATUS_STYLE = {'Todo': 'white', 'InProgress': 'yellow', 'Done': 'green'}


def _render_board(columns: dict[str, list[Task]], console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title="Board", show_header=True)
    table.add_column("Column", style="bold")
    table.add_column("Pos", justify="right")
    table.add_column("Task ID", style="cyan")
    table.add_column("Title")
    table.add_column("Priority")
    for column, tasks in columns.items():
        style = _STATUS_STYLE.get(column, 'white')
        for task in tasks:
            table.add_row(
                f"[{style}]{column}[/{style}]",
                str(task.position),
                task.id,
                task.title,
                task.priority.value,
            )
    console.print(table)


def _show_board(args: argparse.Namespace) -> int:
    board = _board(args)
    columns = board.workflow.get_board(_user(args), args.project_id)
    if args.table:
        _render_board(columns)
        return 0
    return _emit(board_to_dict(columns))


def _task_create(args: argparse.Namespace) -> int:
    board = _board(args)
    task = board.tasks.create_task(
        _user(args),
        args.title,
        description=args.description,
        project_id=args.project_id,
        priority=args.priority,
        due_date=args.due,
    )
    return _emit(task.to_dict())


def _task_list(args: argparse.Namespace) -> int:
    board = _board(args)
    filters: dict[str, Any] = {
        'project_id': args.project_id,
        'is_completed': args.completed,
        'priority': args.priority,
        'search': args.search,
        'sort': args.sort,
    }
    if args.page is None:
        tasks = board.tasks.list_tasks(_user(args), **filters)
        return _emit({'tasks': [t.to_dict() for t in tasks], 'total': len(tasks)})
    page = board.tasks.page_tasks(_user(args), page=args.page, page_size=args.page_size, **filters)
    return _emit({
        'tasks': [t.to_dict() for t in page.tasks],
        'total': page.total_items,
        'pagination': page.pagination(),
    })


def _task_status(args: argparse.Namespace) -> int:
    board = _board(args)
    return _emit(board.workflow.update_status(args.task_id, args.status, _user(args)).to_dict())


def _task_move(args: argparse.Namespace) -> int:
    board = _board(args)
    return _emit(board.workflow.update_position(args.task_id, args.position, _user(args)).to_dict())


def _task_assign(args: argparse.Namespace) -> int:
    board = _board(args)
    assignment = board.tasks.assign_user(
        args.task_id, _user(args), args.assignee, permission=args.permission, note=args.note
    )
    return _emit(assignment.to_dict())


def _task_delete(args: argparse.Namespace) -> int:
    board = _board(args)
    board.tasks.delete_task(args.task_id, _user(args))
    return _emit({'deleted': args.task_id})


def _project_create(args: argparse.Namespace) -> int:
    board = _board(args)
    return _emit(board.projects.create_project(_user(args), args.title, args.description).to_dict())


def _project_list(args: argparse.Namespace) -> int:
    board = _board(args)
    projects = board.projects.list_projects(_user(args))
    return _emit({'projects': [p.to_dict() for p in projects]})


def _project_add_member(args: argparse.Namespace) -> int:
    board = _board(args)
    member = board.projects.add_member(args.project_id, _user(args), args.member, args.role)
    return _emit(member.to_dict())


def _dep_add(args: argparse.Namespace) -> int:
    board = _board(args)
    edge = board.graph.add_dependency(args.task_id, args.depends_on, _user(args))
    return _emit(edge.to_dict())


def _dep_remove(args: argparse.Namespace) -> int:
    board = _board(args)
    removed = board.graph.remove_dependency(args.task_id, args.depends_on, _user(args))
    return _emit({'removed': removed})


def _dep_list(args: argparse.Namespace) -> int:
    board = _board(args)
    deps = board.graph.get_dependencies(args.task_id, _user(args))
    dependents = board.graph.get_dependents(args.task_id, _user(args))
    blockers = board.graph.get_blockers(args.task_id)
    return _emit({
        'dependencies': [d.to_dict() for d in deps],
        'dependents': [t.id for t in dependents],
        'blockers': [t.id for t in blockers],
        'is_blocked': bool(blockers),
    })


def _checklist_add(args: argparse.Namespace) -> int:
    board = _board(args)
    return _emit(board.checklist.add_item(args.task_id, _user(args), args.title, args.order).to_dict())


def _checklist_list(args: argparse.Namespace) -> int:
    board = _board(args)
    items = board.checklist.list_items(args.task_id, _user(args))
    return _emit({'items': [i.to_dict() for i in items], 'total': len(items)})


def _checklist_toggle(args: argparse.Namespace) -> int:
    board = _board(args)
    return _emit(board.checklist.toggle_item(args.task_id, args.item_id, _user(args)).to_dict())


def _checklist_remove(args: argparse.Namespace) -> int:
    board = _board(args)
    board.checklist.delete_item(args.task_id, args.item_id, _user(args))
    return _emit({'deleted': args.item_id})


def _stats(args: argparse.Namespace) -> int:
    board = _board(args)
    return _emit(board.dashboard.get_stats(_user(args), args.days).to_dict())


def _timer_start(args: argparse.Namespace) -> int:
    board = _board(args)
    return _emit(board.timer.start_timer(args.task_id, _user(args)).to_dict())


def _timer_stop(args: argparse.Namespace) -> int:
    board = _board(args)
    return _emit(board.timer.stop_timer(args.task_id, _user(args)).to_dict())


def _timer_log(args: argparse.Namespace) -> int:
    board = _board(args)
    entry = board.timer.log_manual(
        args.task_id, _user(args), _parse_when(args.start), _parse_when(args.end), args.notes
    )
    return _emit(entry.to_dict())


def _timer_history(args: argparse.Namespace) -> int:
    board = _board(args)
    board.tasks.get_task(args.task_id, _user(args))
    entries = board.timer.get_task_history(args.task_id)
    total = board.timer.get_total_time_spent(args.task_id)
    return _emit({'entries': [e.to_dict() for e in entries], 'total': format_duration(total)})


def _timer_current(args: argparse.Namespace) -> int:
    board = _board(args)
    entry = board.timer.get_running_timer(_user(args))
    return _emit({'running': entry.to_dict() if entry else None})


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Taskboard: Kanban tasks with dependencies and time tracking')
    parser.add_argument('--project-dir', default=None, help='Target project directory (default: current working directory)')
    parser.add_argument('--user', default=os.environ.get('TASKBOARD_USER'), help='Acting user id (default: $TASKBOARD_USER)')
    parser.add_argument('--log-level', default=None, help='Override the configured log level')
    subparsers = parser.add_subparsers(dest='command', required=True)

    server = subparsers.add_parser('server', help='Start the web server')
    server.add_argument('--host', default='127.0.0.1')
    server.add_argument('--port', default=8000, type=int)
    server.set_defaults(func=_server)

    board = subparsers.add_parser('board', help='Show the Kanban board')
    board.add_argument('--project-id', default=None)
    board.add_argument('--table', action='store_true', help='Render a table instead of JSON')
    board.set_defaults(func=_show_board)

    task = subparsers.add_parser('task', help='Manage tasks')
    task_sub = task.add_subparsers(dest='task_cmd', required=True)
    tcreate = task_sub.add_parser('create', help='Create a task')
    tcreate.add_argument('title')
    tcreate.add_argument('--description', default='')
    tcreate.add_argument('--priority', default='Medium', choices=['Low', 'Medium', 'High'])
    tcreate.add_argument('--project-id', default=None)
    tcreate.add_argument('--due', default=None, help='Due date (ISO-8601)')
    tcreate.set_defaults(func=_task_create)
    tlist = task_sub.add_parser('list', help='List visible tasks')
    tlist.add_argument('--project-id', default=None)
    done_group = tlist.add_mutually_exclusive_group()
    done_group.add_argument('--completed', dest='completed', action='store_const', const=True, default=None)
    done_group.add_argument('--open', dest='completed', action='store_const', const=False)
    tlist.add_argument('--priority', default=None, choices=['Low', 'Medium', 'High'])
    tlist.add_argument('--search', default=None, help='Match title or description')
    tlist.add_argument('--sort', default='created_desc', choices=list(TASK_SORTS))
    tlist.add_argument('--page', default=None, type=int)
    tlist.add_argument('--page-size', default=10, type=int)
    tlist.set_defaults(func=_task_list)
    tstatus = task_sub.add_parser('status', help='Move a task to another column')
    tstatus.add_argument('task_id')
    tstatus.add_argument('status', help='Todo, InProgress or Done')
    tstatus.set_defaults(func=_task_status)
    tmove = task_sub.add_parser('move', help='Set a task position within its column')
    tmove.add_argument('task_id')
    tmove.add_argument('position', type=int)
    tmove.set_defaults(func=_task_move)
    tassign = task_sub.add_parser('assign', help='Assign a user to a task')
    tassign.add_argument('task_id')
    tassign.add_argument('assignee')
    tassign.add_argument('--permission', default='Editor', choices=['Viewer', 'Editor'])
    tassign.add_argument('--note', default=None)
    tassign.set_defaults(func=_task_assign)
    tdelete = task_sub.add_parser('delete', help='Delete a task')
    tdelete.add_argument('task_id')
    tdelete.set_defaults(func=_task_delete)

    project = subparsers.add_parser('project', help='Manage projects')
    project_sub = project.add_subparsers(dest='project_cmd', required=True)
    pcreate = project_sub.add_parser('create', help='Create a project')
    pcreate.add_argument('title')
    pcreate.add_argument('--description', default='')
    pcreate.set_defaults(func=_project_create)
    plist = project_sub.add_parser('list', help='List projects you belong to')
    plist.set_defaults(func=_project_list)
    pmember = project_sub.add_parser('add-member', help='Add a project member')
    pmember.add_argument('project_id')
    pmember.add_argument('member')
    pmember.add_argument('--role', default='Viewer', choices=['Owner', 'Editor', 'Viewer'])
    pmember.set_defaults(func=_project_add_member)

    dep = subparsers.add_parser('dep', help='Manage task dependencies')
    dep_sub = dep.add_subparsers(dest='dep_cmd', required=True)
    dadd = dep_sub.add_parser('add', help='Make a task wait on another')
    dadd.add_argument('task_id')
    dadd.add_argument('depends_on')
    dadd.set_defaults(func=_dep_add)
    dremove = dep_sub.add_parser('remove', help='Remove a dependency')
    dremove.add_argument('task_id')
    dremove.add_argument('depends_on')
    dremove.set_defaults(func=_dep_remove)
    dlist = dep_sub.add_parser('list', help='List dependencies and blockers')
    dlist.add_argument('task_id')
    dlist.set_defaults(func=_dep_list)

    checklist = subparsers.add_parser('checklist', help='Manage task checklists')
    checklist_sub = checklist.add_subparsers(dest='checklist_cmd', required=True)
    cadd = checklist_sub.add_parser('add', help='Add a checklist item')
    cadd.add_argument('task_id')
    cadd.add_argument('title')
    cadd.add_argument('--order', default=None, type=int)
    cadd.set_defaults(func=_checklist_add)
    clist = checklist_sub.add_parser('list', help='List checklist items')
    clist.add_argument('task_id')
    clist.set_defaults(func=_checklist_list)
    ctoggle = checklist_sub.add_parser('toggle', help='Tick or untick an item')
    ctoggle.add_argument('task_id')
    ctoggle.add_argument('item_id')
    ctoggle.set_defaults(func=_checklist_toggle)
    cremove = checklist_sub.add_parser('remove', help='Remove an item')
    cremove.add_argument('task_id')
    cremove.add_argument('item_id')
    cremove.set_defaults(func=_checklist_remove)

    stats = subparsers.add_parser('stats', help='Show dashboard statistics for your tasks')
    stats.add_argument('--days', default=7, type=int, help='Days of daily activity to include')
    stats.set_defaults(func=_stats)

    timer = subparsers.add_parser('timer', help='Track time on tasks')
    timer_sub = timer.add_subparsers(dest='timer_cmd', required=True)
    tstart = timer_sub.add_parser('start', help='Start a timer')
    tstart.add_argument('task_id')
    tstart.set_defaults(func=_timer_start)
    tstop = timer_sub.add_parser('stop', help='Stop the running timer on a task')
    tstop.add_argument('task_id')
    tstop.set_defaults(func=_timer_stop)
    tlog = timer_sub.add_parser('log', help='Log a manual time entry')
    tlog.add_argument('task_id')
    tlog.add_argument('start', help='Start time (ISO-8601)')
    tlog.add_argument('end', help='End time (ISO-8601)')
    tlog.add_argument('--notes', default=None)
    tlog.set_defaults(func=_timer_log)
    thistory = timer_sub.add_parser('history', help='Show time entries and total for a task')
    thistory.add_argument('task_id')
    thistory.set_defaults(func=_timer_history)
    tcurrent = timer_sub.add_parser('current', help='Show your running timer')
    tcurrent.set_defaults(func=_timer_current)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return int(handler(args) or 0)
    except TaskboardError as exc:
        logger.debug("Command {} failed: {}", args.command, exc.code)
        sys.stderr.write(f"{exc.code}: {exc.message}\n")
        return 1


if __name__ == '__main__':
    raise SystemExit(main())
