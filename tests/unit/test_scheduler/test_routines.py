"""
Unit tests for the generator based routine scheduler.

Tests the yield protocol, sub-routine results, exception propagation,
cancellation and the ordering of routine steps.
"""

import logging

import pytest

from trimmer.scheduler import RoutineHandle, RoutineScheduler


@pytest.fixture
def scheduler():
    return RoutineScheduler()


@pytest.mark.unit
class TestRoutineResults:
    """Test cases for routine and sub-routine results."""

    def test_nested_subroutine_results(self, scheduler):
        """Each parent sees the result of its own child only."""
        seen = {}

        def grandchild():
            yield
            yield 42

        def child():
            yield grandchild()
            seen["child"] = scheduler.get_subroutine_result()
            yield "done"

        def parent():
            yield child()
            seen["parent"] = scheduler.get_subroutine_result()

        handle = scheduler.start(parent())
        scheduler.run_until_complete(handle, max_ticks=20)

        assert seen == {"child": 42, "parent": "done"}
        assert handle.done
        assert handle.error is None

    def test_yield_expression_receives_result(self, scheduler):
        def child():
            yield
            return "value"

        def parent():
            result = yield child()
            return result * 2

        handle = scheduler.start(parent())
        assert scheduler.run_until_complete(handle, max_ticks=10) == "valuevalue"

    def test_return_value_takes_precedence(self, scheduler):
        def child():
            yield "produced"
            return "returned"

        def parent():
            return (yield child())

        handle = scheduler.start(parent())
        assert scheduler.run_until_complete(handle, max_ticks=10) == "returned"

    def test_result_defaults_to_last_produced_value(self, scheduler):
        def routine():
            yield 1
            yield None
            yield 2
            yield

        handle = scheduler.start(routine())
        assert scheduler.run_until_complete(handle, max_ticks=10) == 2

    def test_result_default(self, scheduler):
        seen = []

        def child():
            yield

        def parent():
            yield child()
            seen.append(scheduler.get_subroutine_result(default="fallback"))

        scheduler.run_until_complete(scheduler.start(parent()), max_ticks=10)
        assert seen == ["fallback"]

    def test_result_can_only_be_read_once(self, scheduler):
        errors = []

        def child():
            yield 7

        def parent():
            yield child()
            assert scheduler.get_subroutine_result() == 7
            try:
                scheduler.get_subroutine_result()
            except RuntimeError as e:
                errors.append(e)

        scheduler.run_until_complete(scheduler.start(parent()), max_ticks=10)
        assert len(errors) == 1

    def test_result_not_readable_after_next_yield(self, scheduler):
        errors = []

        def child():
            yield 7

        def parent():
            yield child()
            yield
            try:
                scheduler.get_subroutine_result()
            except RuntimeError as e:
                errors.append(e)

        scheduler.run_until_complete(scheduler.start(parent()), max_ticks=10)
        assert len(errors) == 1

    def test_result_not_readable_by_other_routine(self, scheduler):
        def child():
            yield 7

        def bystander():
            scheduler.get_subroutine_result()
            yield

        bystander_handles = []

        def parent():
            yield child()
            bystander_handles.append(scheduler.start(bystander()))
            return scheduler.get_subroutine_result()

        handle = scheduler.start(parent())
        assert scheduler.run_until_complete(handle, max_ticks=10) == 7
        assert isinstance(bystander_handles[0].error, RuntimeError)

    def test_result_outside_routine(self, scheduler):
        with pytest.raises(RuntimeError):
            scheduler.get_subroutine_result()


@pytest.mark.unit
class TestRoutineErrors:
    """Test cases for exception propagation."""

    def test_subroutine_error_is_thrown_into_parent(self, scheduler):
        def child():
            yield
            raise ValueError("child failed")

        def parent():
            try:
                yield child()
            except ValueError as e:
                return f"handled: {e}"

        handle = scheduler.start(parent())
        assert scheduler.run_until_complete(handle, max_ticks=10) == "handled: child failed"

    def test_unhandled_error_fails_handle(self, scheduler, caplog):
        def grandchild():
            yield
            raise KeyError("missing")

        def child():
            yield grandchild()

        def parent():
            yield child()

        handle = scheduler.start(parent())
        with caplog.at_level(logging.ERROR, logger="trimmer.scheduler.routines"):
            with pytest.raises(KeyError):
                scheduler.run_until_complete(handle, max_ticks=10)

        assert isinstance(handle.error, KeyError)
        assert handle.done
        assert "Routine parent failed" in caplog.text

    def test_start_requires_generator(self, scheduler):
        def not_a_generator():
            return 1

        with pytest.raises(TypeError):
            scheduler.start(not_a_generator())

    def test_max_ticks(self, scheduler):
        def endless():
            while True:
                yield

        with pytest.raises(RuntimeError):
            scheduler.run_until_complete(scheduler.start(endless()), max_ticks=5)


@pytest.mark.unit
class TestRoutineOrdering:
    """Test cases for the ordering guarantees of the scheduler."""

    def test_start_advances_immediately(self, scheduler):
        log = []

        def routine():
            log.append("started")
            yield
            log.append("resumed")

        scheduler.start(routine())
        assert log == ["started"]
        scheduler.tick()
        assert log == ["started", "resumed"]

    def test_parent_waits_for_child(self, scheduler):
        log = []

        def child():
            for i in range(3):
                log.append(f"child {i}")
                yield

        def parent():
            log.append("parent start")
            yield child()
            log.append("parent end")

        scheduler.run_until_complete(scheduler.start(parent()), max_ticks=10)
        assert log == ["parent start", "child 0", "child 1", "child 2", "parent end"]

    def test_sequential_subroutines_do_not_interleave(self, scheduler):
        log = []

        def worker(name):
            for i in range(3):
                log.append((name, i))
                yield

        def parent():
            for name in ("a", "b", "c"):
                yield worker(name)

        scheduler.run_until_complete(scheduler.start(parent()), max_ticks=20)
        assert log == [(name, i) for name in ("a", "b", "c") for i in range(3)]

    def test_many_immediately_finishing_subroutines(self, scheduler):
        """Sub-routines that finish on their first step don't nest the stack."""
        count = 5000

        def instant(value):
            if False:
                yield
            return value

        def parent():
            total = 0
            for _ in range(count):
                total += yield instant(1)
            return total

        handle = scheduler.start(parent())

        assert handle.done
        assert handle.error is None
        assert handle.result == count

    def test_many_immediately_failing_subroutines(self, scheduler):
        count = 5000

        def failing():
            if False:
                yield
            raise ValueError("broken")

        def parent():
            caught = 0
            for _ in range(count):
                try:
                    yield failing()
                except ValueError:
                    caught += 1
            return caught

        assert scheduler.run_until_complete(scheduler.start(parent()), max_ticks=1) == count

    def test_tick_advances_each_routine_once(self, scheduler):
        counts = {"a": 0, "b": 0}

        def counter(name):
            while True:
                counts[name] += 1
                yield

        handle_a = scheduler.start(counter("a"))
        handle_b = scheduler.start(counter("b"))
        scheduler.tick()
        scheduler.tick()

        assert counts == {"a": 3, "b": 3}
        assert len(scheduler) == 2
        scheduler.cancel(handle_a)
        scheduler.cancel(handle_b)
        assert scheduler.is_idle

    def test_routine_started_during_tick_waits_for_next_tick(self, scheduler):
        log = []

        def late():
            log.append("late start")
            yield
            log.append("late resumed")

        def starter():
            yield
            scheduler.start(late())
            yield

        scheduler.start(starter())
        scheduler.tick()
        assert log == ["late start"]
        scheduler.tick()
        assert log == ["late start", "late resumed"]

    @pytest.mark.asyncio
    async def test_run_async(self, scheduler):
        def child():
            yield
            yield "async result"

        def parent():
            return (yield child())

        handle = scheduler.start(parent())
        assert await scheduler.run_async(handle) == "async result"


@pytest.mark.unit
class TestRoutineCancellation:
    """Test cases for cancelling routines."""

    def test_cancel_closes_nested_chain(self, scheduler):
        closed = []

        def child():
            try:
                while True:
                    yield
            finally:
                closed.append("child")

        def parent():
            try:
                yield child()
            finally:
                closed.append("parent")

        handle = scheduler.start(parent())
        scheduler.tick()

        assert scheduler.cancel(handle)
        assert closed == ["child", "parent"]
        assert handle.done
        assert handle.cancelled
        assert scheduler.is_idle

    def test_cancel_finished_routine(self, scheduler):
        def routine():
            yield

        handle = scheduler.start(routine())
        scheduler.run_until_complete(handle, max_ticks=5)
        assert not scheduler.cancel(handle)
        assert not handle.cancelled

    def test_routine_cannot_cancel_itself(self, scheduler):
        handles = []

        def routine():
            yield
            scheduler.cancel(handles[0])

        handles.append(scheduler.start(routine()))
        scheduler.tick()

        assert isinstance(handles[0].error, RuntimeError)

    def test_handle_repr(self):
        handle = RoutineHandle("upload")
        assert "running" in repr(handle)
