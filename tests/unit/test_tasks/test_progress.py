"""
Unit tests for progress reporting through the registry and task tokens.
"""

import logging

import pytest

from trimmer.tasks import CancellationSource, ProgressRegistry, TaskToken, get_progress_registry
from trimmer.validation import OperationCancelledError


@pytest.mark.unit
class TestProgressRegistry:
    """Test cases for the ProgressRegistry."""

    def test_ids_start_at_one(self, registry):
        assert registry.start("first") == 1
        assert registry.start("second") == 2
        assert len(registry) == 2

    def test_report_step_updates_fraction(self, registry):
        task_id = registry.start("zip")
        registry.report_step(task_id, 1, 4, "Archiving")

        entry = registry.get(task_id)
        assert entry.current_step == 1
        assert entry.total_steps == 4
        assert entry.fraction == 0.25
        assert entry.description == "Archiving"
        assert registry.get_total_steps(task_id) == 4
        assert registry.get_name(task_id) == "zip"

    def test_get_returns_copy(self, registry):
        task_id = registry.start("zip")
        registry.get(task_id).current_step = 99
        assert registry.get(task_id).current_step == 0

    def test_report_fraction_is_clamped(self, registry):
        task_id = registry.start("upload")
        registry.report_fraction(task_id, 1.5)
        assert registry.get(task_id).fraction == 1.0

    def test_unknown_tasks_are_ignored(self, registry):
        registry.report_step(42, 1, 2)
        registry.report_fraction(42, 0.5)
        assert registry.get(42) is None
        assert registry.get_name(42) == ""
        assert registry.get_total_steps(42) == 0

    def test_remove_removes_children(self, registry):
        parent = registry.start("parent")
        registry.start("child", parent_id=parent)
        other = registry.start("other")

        assert registry.remove(parent) == 0
        assert [entry.id for entry in registry.entries] == [other]

    def test_listeners_receive_snapshots(self, registry):
        updates = []
        unsubscribe = registry.subscribe(updates.append)

        task_id = registry.start("steam")
        registry.report_step(task_id, 1, 2)
        registry.remove(task_id)
        unsubscribe()
        registry.start("ignored")

        assert [(u.id, u.current_step, u.removed) for u in updates] == [
            (task_id, 0, False),
            (task_id, 1, False),
            (task_id, 1, True),
        ]

    def test_failing_listener_does_not_break_reporting(self, registry, caplog):
        def broken(update):
            raise RuntimeError("listener bug")

        registry.subscribe(broken)
        with caplog.at_level(logging.WARNING):
            task_id = registry.start("zip")
        assert registry.get(task_id) is not None
        assert "listener bug" in caplog.text

    def test_default_registry_is_shared(self):
        assert get_progress_registry() is get_progress_registry()


@pytest.mark.unit
class TestTaskToken:
    """Test cases for TaskToken."""

    def test_report_adds_base_step(self, registry):
        task = TaskToken.start("zip", registry=registry)
        task.report(0, 3)
        task.advance()
        task.report(1)

        entry = registry.get(task.task_id)
        assert entry.current_step == 2
        assert entry.total_steps == 3

    def test_report_logs_description(self, registry, caplog):
        task = TaskToken.start("ZipDistro", registry=registry)
        with caplog.at_level(logging.INFO, logger="trimmer.tasks.progress"):
            task.report(1, 2, description="Archiving Game")
        assert "ZipDistro: Archiving Game (1/2)" in caplog.text

    def test_report_logs_context(self, registry, caplog):
        task = TaskToken.start("ZipDistro", registry=registry, context="nightly")
        with caplog.at_level(logging.INFO, logger="trimmer.tasks.progress"):
            task.report(0, 1, description="Archiving")
        assert "[nightly] ZipDistro: Archiving (0/1)" in caplog.text

    def test_child_reports_into_own_entry(self, registry):
        parent = TaskToken.start("upload", registry=registry)
        parent.report(0, 2)
        parent.advance()

        child = parent.start_child("notarize")
        child.report(1, 5)

        assert child.parent_id == parent.task_id
        assert child.base_step == 0
        assert registry.get(child.task_id).current_step == 1
        assert registry.get(child.task_id).total_steps == 5
        # The parent's range is untouched by the child
        assert registry.get(parent.task_id).current_step == 0
        assert registry.get(parent.task_id).total_steps == 2

    def test_grandchild_is_flattened_to_root(self, registry):
        root = TaskToken.start("root", registry=registry)
        child = root.start_child("child")
        grandchild = child.start_child("grandchild")
        assert grandchild.parent_id == root.task_id

    def test_child_steps_stay_within_range(self, registry):
        parent = TaskToken.start("zip", registry=registry)
        parent.report(0, 2)
        steps = []
        registry.subscribe(lambda u: steps.append((u.id, u.current_step, u.total_steps)))

        for _ in range(2):
            child = parent.start_child("step")
            for step in range(4):
                child.report(step, 3)
            child.remove()
            parent.advance()
            parent.report(0)

        for task_id, current, total in steps:
            assert 0 <= current <= total
        assert registry.get(parent.task_id).current_step == 2

    def test_child_shares_cancellation_and_context(self, registry):
        source = CancellationSource()
        parent = TaskToken.start("steam", cancellation=source.token, registry=registry, context="beta")
        child = parent.start_child("upload")

        assert child.context == "beta"
        assert not child.is_cancellation_requested
        source.cancel()
        assert child.is_cancellation_requested
        with pytest.raises(OperationCancelledError):
            child.throw_if_cancellation_requested("steam")

    def test_remove_resets_id(self, registry):
        task = TaskToken.start("zip", registry=registry)
        task.remove()
        assert task.task_id == 0
        assert len(registry) == 0

    def test_report_progress(self, registry):
        task = TaskToken.start("upload", registry=registry)
        task.report_progress(0.5, "Uploading")
        entry = registry.get(task.task_id)
        assert entry.fraction == 0.5
        assert entry.description == "Uploading"

    def test_fresh_registry_per_test(self):
        assert len(ProgressRegistry()) == 0
