from __future__ import annotations

import json
from pathlib import Path

import pytest
from loguru import logger

from taskboard.cli import main


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger.remove()


def _run(capsys, tmp_path: Path, *argv: str, user: str = 'alice') -> tuple[int, dict]:
    rc = main(['--project-dir', str(tmp_path), '--user', user, '--log-level', 'ERROR', *argv])
    out = capsys.readouterr().out
    return rc, (json.loads(out) if out.strip() else {})


def test_task_create_list_and_board(capsys, tmp_path: Path) -> None:
    rc, task = _run(capsys, tmp_path, 'task', 'create', 'CLI Task', '--priority', 'High')
    assert rc == 0
    assert task['priority'] == 'High'

    rc, listing = _run(capsys, tmp_path, 'task', 'list')
    assert rc == 0
    assert listing['total'] == 1

    rc, _ = _run(capsys, tmp_path, 'task', 'status', task['id'], 'InProgress')
    assert rc == 0
    rc, board = _run(capsys, tmp_path, 'board')
    assert [t['id'] for t in board['InProgress']] == [task['id']]


def test_board_table_output(capsys, tmp_path: Path) -> None:
    _run(capsys, tmp_path, 'task', 'create', 'Tabled')
    rc = main(['--project-dir', str(tmp_path), '--user', 'alice', '--log-level', 'ERROR', 'board', '--table'])
    assert rc == 0
    assert 'Tabled' in capsys.readouterr().out


def test_dependency_blocks_timer(capsys, tmp_path: Path) -> None:
    _, a = _run(capsys, tmp_path, 'task', 'create', 'A')
    _, b = _run(capsys, tmp_path, 'task', 'create', 'B')
    rc, _ = _run(capsys, tmp_path, 'dep', 'add', a['id'], b['id'])
    assert rc == 0

    rc = main(['--project-dir', str(tmp_path), '--user', 'alice', '--log-level', 'ERROR', 'timer', 'start', a['id']])
    assert rc == 1
    assert 'blocked' in capsys.readouterr().err

    _run(capsys, tmp_path, 'task', 'status', b['id'], 'Done')
    rc, entry = _run(capsys, tmp_path, 'timer', 'start', a['id'])
    assert rc == 0
    assert entry['end_time'] is None

    rc, current = _run(capsys, tmp_path, 'timer', 'current')
    assert current['running']['task_id'] == a['id']

    rc, _ = _run(capsys, tmp_path, 'timer', 'stop', a['id'])
    assert rc == 0
    rc, history = _run(capsys, tmp_path, 'timer', 'history', a['id'])
    assert len(history['entries']) == 1


def test_manual_log_and_projects(capsys, tmp_path: Path) -> None:
    _, project = _run(capsys, tmp_path, 'project', 'create', 'Launch')
    rc, member = _run(capsys, tmp_path, 'project', 'add-member', project['id'], 'bob', '--role', 'Editor')
    assert rc == 0
    assert member['role'] == 'Editor'

    _, task = _run(capsys, tmp_path, 'task', 'create', 'Shared', '--project-id', project['id'])
    rc, entry = _run(
        capsys, tmp_path, 'timer', 'log', task['id'], '2025-01-01T10:00:00Z', '2025-01-01T11:30:00Z', user='bob'
    )
    assert rc == 0
    assert entry['is_manual'] is True
    rc, history = _run(capsys, tmp_path, 'timer', 'history', task['id'])
    assert history['total'] == '01:30:00'


def test_list_filters_checklist_and_stats(capsys, tmp_path: Path) -> None:
    _, task = _run(capsys, tmp_path, 'task', 'create', 'Write report', '--priority', 'High')
    _run(capsys, tmp_path, 'task', 'create', 'Book venue')

    rc, listing = _run(capsys, tmp_path, 'task', 'list', '--search', 'report', '--open')
    assert rc == 0
    assert [t['id'] for t in listing['tasks']] == [task['id']]
    rc, listing = _run(capsys, tmp_path, 'task', 'list', '--page', '1', '--page-size', '1')
    assert listing['pagination']['total_pages'] == 2

    _, item = _run(capsys, tmp_path, 'checklist', 'add', task['id'], 'Outline')
    rc, ticked = _run(capsys, tmp_path, 'checklist', 'toggle', task['id'], item['id'])
    assert rc == 0
    assert ticked['is_completed'] is True
    _, items = _run(capsys, tmp_path, 'checklist', 'list', task['id'])
    assert items['total'] == 1

    _run(capsys, tmp_path, 'task', 'status', task['id'], 'Done')
    rc, stats = _run(capsys, tmp_path, 'stats', '--days', '3')
    assert rc == 0
    assert stats['total_tasks'] == 2
    assert stats['completion_rate'] == 50.0
    assert len(stats['tasks_per_day']) == 3


def test_missing_user_fails(capsys, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv('TASKBOARD_USER', raising=False)
    rc = main(['--project-dir', str(tmp_path), '--log-level', 'ERROR', 'task', 'list'])
    assert rc == 1
    assert 'TASKBOARD_USER' in capsys.readouterr().err
