from dataclasses import replace

import pytest

from core.errors import JobProtocolError
from core.reducer import (
    GENERATION_FAILED_ALERT,
    STATUS_IN_PROGRESS,
    STATUS_QUEUED,
    AlertDismiss,
    AlertRetry,
    CancelJob,
    JobEventReceived,
    JobFailed,
    JobFinished,
    StartJob,
    Submit,
    TextChanged,
    UIState,
    reduce,
)
from fakes import completed, in_progress, make_image, queued


def _started(prompt="a cat"):
    state, effects = reduce(UIState(input_text=prompt), Submit())
    return state, effects


def test_text_changed_sets_input():
    state, effects = reduce(UIState(), TextChanged("hello"))
    assert state.input_text == "hello"
    assert effects == []


def test_submit_starts_job():
    state, effects = _started("a cat")
    assert state.input_text == ""
    assert state.pending_prompt == "a cat"
    assert state.status_label == STATUS_QUEUED
    assert state.busy
    assert effects == [StartJob(job=state.active_job, prompt="a cat")]


def test_job_tokens_increase():
    state, _ = _started("one")
    first = state.active_job
    state, _ = reduce(state, JobEventReceived(first, completed("one", make_image("one"))))
    state, _ = reduce(replace(state, input_text="two"), Submit())
    assert state.active_job == first + 1


def test_submit_while_busy_is_ignored():
    state, _ = _started("a cat")
    busy = replace(state, input_text="a dog")
    new_state, effects = reduce(busy, Submit())
    assert new_state == busy
    assert effects == []


def test_empty_submit_cancels_active_job():
    state, _ = _started()
    job = state.active_job
    state, effects = reduce(state, Submit())
    assert effects == [CancelJob(job)]
    assert state.status_label is None
    assert not state.busy
    assert state.alert is None


def test_empty_submit_when_idle_has_no_effect():
    state, effects = reduce(UIState(), Submit())
    assert effects == []
    assert state == UIState()


def test_status_events_update_label():
    state, _ = _started("p")
    job = state.active_job
    state, _ = reduce(state, JobEventReceived(job, in_progress("p", "step 1")))
    assert state.status_label == STATUS_IN_PROGRESS
    assert [line.message for line in state.logs] == ["step 1"]
    state, _ = reduce(state, JobEventReceived(job, queued("p")))
    assert state.status_label == STATUS_QUEUED


def test_queue_position_is_shown():
    state, _ = _started("p")
    state, _ = reduce(state, JobEventReceived(state.active_job, queued("p", position=3)))
    assert state.status_label == "Queued (position 3)..."


def test_completion_inserts_first_image_at_head():
    old = make_image("old")
    state, _ = reduce(UIState(input_text="p", images=(old,)), Submit())
    first, second = make_image("new-1"), make_image("new-2")
    state, effects = reduce(state, JobEventReceived(state.active_job, completed("p", first, second)))
    assert effects == []
    assert state.images == (first, old)
    assert state.status_label is None
    assert state.pending_prompt is None
    assert not state.busy


def test_completion_with_known_image_does_not_duplicate():
    image = make_image("same")
    state, _ = reduce(UIState(input_text="p", images=(image,)), Submit())
    state, _ = reduce(state, JobEventReceived(state.active_job, completed("p", image)))
    assert state.images == (image,)
    assert not state.busy


def test_completion_without_images_fails():
    state, _ = _started("p")
    state, _ = reduce(state, JobEventReceived(state.active_job, completed("p")))
    assert state.alert == GENERATION_FAILED_ALERT
    assert state.pending_prompt == "p"
    assert not state.busy


def test_failure_raises_alert_and_keeps_history():
    image = make_image("kept")
    state, _ = reduce(UIState(input_text="p", images=(image,)), Submit())
    state, _ = reduce(state, JobFailed(state.active_job, JobProtocolError("boom")))
    assert state.alert == GENERATION_FAILED_ALERT
    assert state.images == (image,)
    assert state.pending_prompt == "p"
    assert state.status_label is None
    assert not state.busy


def test_retry_restores_failed_prompt():
    state, _ = _started("a red fox")
    state, _ = reduce(state, JobFailed(state.active_job, JobProtocolError("boom")))
    state, _ = reduce(state, AlertRetry())
    assert state.input_text == "a red fox"
    assert state.alert is None


def test_dismiss_only_clears_alert():
    state, _ = _started("a red fox")
    state, _ = reduce(state, JobFailed(state.active_job, JobProtocolError("boom")))
    state, _ = reduce(state, AlertDismiss())
    assert state.alert is None
    assert state.input_text == ""
    assert state.pending_prompt == "a red fox"


@pytest.mark.parametrize("action", [AlertRetry(), AlertDismiss()])
def test_alert_actions_without_alert_are_noops(action):
    state = UIState(input_text="x", pending_prompt="y")
    assert reduce(state, action) == (state, [])


def test_stale_job_events_are_ignored():
    state, _ = _started("p")
    stale = state.active_job - 1
    for action in (
        JobEventReceived(stale, in_progress("p")),
        JobEventReceived(stale, completed("p", make_image("x"))),
        JobFailed(stale, JobProtocolError("late")),
        JobFinished(stale),
    ):
        assert reduce(state, action) == (state, [])


def test_events_after_cancel_are_ignored():
    state, _ = _started("p")
    job = state.active_job
    state, _ = reduce(state, Submit())
    idle = state
    state, _ = reduce(state, JobEventReceived(job, completed("p", make_image("late"))))
    assert state == idle
    assert state.images == ()


def test_stream_finished_without_result_returns_to_idle():
    state, _ = _started("p")
    state, _ = reduce(state, JobFinished(state.active_job))
    assert not state.busy
    assert state.status_label is None
    assert state.alert is None


@pytest.mark.parametrize(
    "terminal",
    [
        lambda job: JobEventReceived(job, completed("p", make_image("x"))),
        lambda job: JobFailed(job, JobProtocolError("boom")),
        lambda job: JobFinished(job),
        lambda job: Submit(),
    ],
)
def test_terminal_actions_converge_to_idle(terminal):
    state, _ = _started("p")
    state, _ = reduce(state, JobEventReceived(state.active_job, in_progress("p")))
    state, _ = reduce(state, terminal(state.active_job))
    assert state.status_label is None
    assert not state.busy
