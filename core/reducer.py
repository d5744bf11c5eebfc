# core/reducer.py
"""
State machine của màn hình tạo ảnh.

reduce(state, action) -> (state mới, danh sách effect). Hàm thuần: không gọi
mạng, không sửa state cũ. Store chịu trách nhiệm chạy effect và đưa kết quả
quay lại dưới dạng action.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple, Union

from .model import GeneratedImage, JobEvent, LogLine

STATUS_QUEUED = "Queued..."
STATUS_IN_PROGRESS = "In progress..."

ALERT_RETRY = "retry"
ALERT_DISMISS = "dismiss"


@dataclass(frozen=True)
class AlertButton:
    action: str
    label: str


@dataclass(frozen=True)
class AlertState:
    title: str
    buttons: Tuple[AlertButton, ...]


GENERATION_FAILED_ALERT = AlertState(
    title="Failed to generate image.",
    buttons=(
        AlertButton(action=ALERT_RETRY, label="Try again"),
        AlertButton(action=ALERT_DISMISS, label="Okay"),
    ),
)


@dataclass(frozen=True)
class UIState:
    input_text: str = ""
    status_label: Optional[str] = None
    images: Tuple[GeneratedImage, ...] = ()
    pending_prompt: Optional[str] = None
    alert: Optional[AlertState] = None
    # số thứ tự job đang chạy, None khi rảnh
    active_job: Optional[int] = None
    last_job: int = 0
    logs: Tuple[LogLine, ...] = ()

    @property
    def busy(self) -> bool:
        return self.active_job is not None


# ==========================
# Actions
# ==========================

@dataclass(frozen=True)
class TextChanged:
    text: str


@dataclass(frozen=True)
class Submit:
    pass


@dataclass(frozen=True)
class JobEventReceived:
    job: int
    event: JobEvent


@dataclass(frozen=True)
class JobFailed:
    job: int
    error: Exception = field(compare=False)


@dataclass(frozen=True)
class JobFinished:
    job: int


@dataclass(frozen=True)
class AlertRetry:
    pass


@dataclass(frozen=True)
class AlertDismiss:
    pass


Action = Union[TextChanged, Submit, JobEventReceived, JobFailed, JobFinished, AlertRetry, AlertDismiss]


# ==========================
# Effects
# ==========================

@dataclass(frozen=True)
class StartJob:
    job: int
    prompt: str


@dataclass(frozen=True)
class CancelJob:
    job: int


Effect = Union[StartJob, CancelJob]


def _idle(state: UIState, **changes) -> UIState:
    return replace(state, status_label=None, active_job=None, **changes)


def _fail(state: UIState) -> UIState:
    return _idle(state, alert=GENERATION_FAILED_ALERT)


def _queued_label(event: JobEvent) -> str:
    if event.queue_position is not None and event.queue_position > 0:
        return f"Queued (position {event.queue_position})..."
    return STATUS_QUEUED


def _submit(state: UIState) -> Tuple[UIState, List[Effect]]:
    if not state.input_text:
        if state.active_job is None:
            return _idle(state), []
        return _idle(state), [CancelJob(state.active_job)]

    if state.busy:
        # chỉ một job tại một thời điểm
        return state, []

    prompt = state.input_text
    job = state.last_job + 1
    new_state = replace(
        state,
        pending_prompt=prompt,
        input_text="",
        status_label=STATUS_QUEUED,
        active_job=job,
        last_job=job,
        logs=(),
    )
    return new_state, [StartJob(job=job, prompt=prompt)]


def _on_event(state: UIState, event: JobEvent) -> UIState:
    logs = state.logs + tuple(event.logs)
    if event.status == "queued":
        return replace(state, status_label=_queued_label(event), logs=logs)
    if event.status == "in_progress":
        return replace(state, status_label=STATUS_IN_PROGRESS, logs=logs)

    # completed
    if event.result is None or not event.result.images:
        return _fail(state)

    image = event.result.images[0]
    images = state.images
    if all(existing.id != image.id for existing in images):
        images = (image,) + images
    return _idle(state, pending_prompt=None, images=images)


def reduce(state: UIState, action: Action) -> Tuple[UIState, List[Effect]]:
    if isinstance(action, TextChanged):
        return replace(state, input_text=action.text), []

    if isinstance(action, Submit):
        return _submit(state)

    if isinstance(action, (JobEventReceived, JobFailed, JobFinished)):
        if state.active_job is None or action.job != state.active_job:
            # sự kiện của job cũ / đã hủy
            return state, []
        if isinstance(action, JobEventReceived):
            return _on_event(state, action.event), []
        if isinstance(action, JobFailed):
            return _fail(state), []
        # stream đóng mà không có kết quả
        return _idle(state), []

    if isinstance(action, (AlertRetry, AlertDismiss)):
        if state.alert is None:
            return state, []
        if isinstance(action, AlertRetry) and state.pending_prompt is not None:
            return replace(state, alert=None, input_text=state.pending_prompt), []
        return replace(state, alert=None), []

    return state, []
