"""Tests for the per-job progress estimator."""

import pytest

from falgraph.progress import (
    GENERIC_MESSAGE,
    PRE_TERMINAL_CEILING,
    PROGRESS_TOTAL,
    QUEUE_STEP,
    Lifecycle,
    ProgressStrategy,
    ProgressUpdate,
    QueueEvent,
    create_progress_strategy,
    match_milestone,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance_ms(self, ms):
        self.now += ms / 1000.0


@pytest.fixture
def clock():
    return FakeClock()


def make_strategy(clock, expected_ms=10000, **kwargs):
    return ProgressStrategy(expected_ms, clock=clock, **kwargs)


class TestQueueEvent:
    def test_constructors_tag_phase(self):
        assert QueueEvent.queued(3).phase is Lifecycle.QUEUED
        assert QueueEvent.queued(3).position == 3
        assert QueueEvent.in_progress(["a"]).logs == ["a"]
        assert QueueEvent.completed().phase is Lifecycle.COMPLETED

    def test_in_progress_has_no_position(self):
        assert QueueEvent.in_progress().position is None


class TestQueuePhase:
    def test_queue_reports_fixed_low_step(self, clock):
        strategy = make_strategy(clock, in_queue_message="Waiting for Veo...")
        update = strategy.on_queue()
        assert update.step == QUEUE_STEP
        assert update.message == "Waiting for Veo..."

    def test_requeue_after_progress_does_not_go_back(self, clock):
        strategy = make_strategy(clock)
        clock.advance_ms(5000)
        progressed = strategy.on_progress(None, 3)
        requeued = strategy.on_queue()
        assert requeued.step == progressed.step
        assert requeued.step > QUEUE_STEP


class TestInProgressBlend:
    def test_first_step_at_time_zero(self, clock):
        strategy = make_strategy(clock)
        # 99 * 1/21
        assert strategy.on_progress(None, 1).step == 4

    def test_elapsed_equal_to_expected(self, clock):
        strategy = make_strategy(clock, expected_ms=10000)
        clock.advance_ms(10000)
        # 90 + 9 * 1/21
        assert strategy.on_progress(None, 1).step == 90

    def test_half_elapsed_many_events(self, clock):
        strategy = make_strategy(clock, expected_ms=10000)
        clock.advance_ms(5000)
        # 45 + 54 * 20/40
        assert strategy.on_progress(None, 20).step == 72

    def test_never_reaches_100_before_completion(self, clock):
        strategy = make_strategy(clock, expected_ms=1000)
        clock.advance_ms(600000)
        update = strategy.on_progress(None, 100000)
        assert update.step <= PRE_TERMINAL_CEILING
        assert not strategy.completed

    def test_non_positive_expectation_saturates_time(self, clock):
        strategy = make_strategy(clock, expected_ms=0)
        assert strategy.time_fraction() == 1.0
        assert strategy.on_progress(None, 1).step == 90

    def test_steps_are_monotonic(self, clock):
        strategy = make_strategy(clock, expected_ms=20000)
        steps = [strategy.on_queue().step]
        for index in range(1, 30):
            clock.advance_ms(700)
            steps.append(strategy.on_progress(None, index).step)
        assert steps == sorted(steps)
        assert all(0 <= s <= PRE_TERMINAL_CEILING for s in steps)

    def test_lower_step_index_does_not_regress(self, clock):
        strategy = make_strategy(clock)
        high = strategy.on_progress(None, 10).step
        assert strategy.on_progress(None, 2).step >= high


class TestMessages:
    def test_milestone_from_logs(self, clock):
        strategy = make_strategy(clock)
        update = strategy.on_progress(QueueEvent.in_progress(["Loading model weights"]), 1)
        assert update.message == "Loading model..."

    def test_latest_log_line_wins(self):
        assert match_milestone(["loading model", "Encoding video"], (("loading model", "A"), ("encoding", "B"))) == "B"

    def test_no_milestone(self):
        assert match_milestone(["step 3/28"], (("encoding", "B"),)) is None

    def test_default_step_message(self, clock):
        strategy = make_strategy(clock)
        assert strategy.on_progress(QueueEvent.in_progress(["step 3/28"]), 3).message == "Processing step 3..."

    def test_custom_step_message(self, clock):
        strategy = make_strategy(clock, default_in_progress_message=lambda n: f"Generating frame {n}...")
        assert strategy.on_progress(None, 2).message == "Generating frame 2..."

    def test_generic_message_without_default(self, clock):
        strategy = make_strategy(clock, default_in_progress_message=None)
        assert strategy.on_progress(None, 1).message == GENERIC_MESSAGE


class TestCompletion:
    def test_completed_reports_total(self, clock):
        strategy = make_strategy(clock, finalizing_message="Finalizing video...")
        update = strategy.on_completed()
        assert update.step == PROGRESS_TOTAL
        assert update.message == "Finalizing video..."
        assert strategy.completed

    def test_handle_dispatches_and_counts(self, clock):
        strategy = make_strategy(clock)
        strategy.handle(QueueEvent.queued(1))
        strategy.handle(QueueEvent.in_progress())
        strategy.handle(QueueEvent.in_progress())
        assert strategy._step_index == 2
        assert strategy.handle(QueueEvent.completed()).step == PROGRESS_TOTAL

    def test_to_status_shape(self):
        status = ProgressUpdate(42, "Rendering...").to_status()
        assert status == {"type": "running", "message": "Rendering...", "progress": {"step": 42, "total": 100}}


class TestFactory:
    def test_fresh_instance_per_job(self):
        first = create_progress_strategy(1000)
        second = create_progress_strategy(1000)
        first.on_queue()
        assert first is not second
        assert second.last_step == 0
