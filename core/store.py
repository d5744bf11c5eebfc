# core/store.py

import asyncio
import traceback
from typing import Callable, Optional

from .errors import JobError
from .queue_client import JobClient
from .reducer import (
    Action,
    CancelJob,
    Effect,
    JobEventReceived,
    JobFailed,
    JobFinished,
    StartJob,
    UIState,
    reduce,
)


def describe_error(error: BaseException) -> str:
    kind = type(error).__name__ if isinstance(error, JobError) else f"unexpected {type(error).__name__}"
    return f"{kind}: {error}"


class Store:
    """
    Giữ UIState và xử lý action tuần tự qua một asyncio.Queue.
    Job chạy trong task nền, chỉ giao tiếp ngược lại bằng cách send() action.
    """

    def __init__(
        self,
        client: JobClient,
        state: Optional[UIState] = None,
        on_change: Optional[Callable[[UIState], None]] = None,
    ):
        self.client = client
        self.on_change = on_change
        self._state = state or UIState()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._job: Optional[int] = None
        self._job_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> UIState:
        return self._state

    def send(self, action: Action) -> None:
        self._queue.put_nowait(action)

    async def run(self) -> None:
        print("[Store] Started")
        while True:
            action = await self._queue.get()
            try:
                self.process(action)
            except Exception as e:
                # lỗi ở on_change / effect không được làm dừng vòng lặp
                print(f"[Store] ERROR processing action {type(action).__name__}: {e}")
                traceback.print_exc()
            finally:
                self._queue.task_done()

    def process(self, action: Action) -> None:
        if isinstance(action, JobFailed) and action.job == self._state.active_job:
            print(f"[Store] Job {action.job} failed: {describe_error(action.error)}")
        elif (
            isinstance(action, JobEventReceived)
            and action.job == self._state.active_job
            and action.event.status == "completed"
            and (action.event.result is None or not action.event.result.images)
        ):
            print(f"[Store] Job {action.job} completed without images")

        new_state, effects = reduce(self._state, action)
        changed = new_state != self._state
        self._state = new_state

        # chạy effect trước khi báo UI, để lỗi ở on_change không bỏ sót job
        for effect in effects:
            self._execute(effect)

        if changed and self.on_change is not None:
            self.on_change(new_state)

    async def flush(self) -> None:
        """Chờ xử lý hết các action đang trong hàng đợi (không chờ job)."""
        await self._queue.join()

    async def settle(self) -> None:
        """Chờ tới khi hàng đợi rỗng và không còn job nào chạy."""
        while True:
            await self._queue.join()
            task = self._job_task
            if task is not None and not task.done():
                await asyncio.wait([task])
                continue
            if self._queue.empty():
                return

    def _execute(self, effect: Effect) -> None:
        if isinstance(effect, StartJob):
            self._start_job(effect)
        elif isinstance(effect, CancelJob):
            self._cancel_job(effect.job)

    def _start_job(self, effect: StartJob) -> None:
        if self._job_task is not None and not self._job_task.done():
            # job trước đã kết thúc về mặt state, chỉ còn đóng stream
            self._cancel_job(self._job)
        print(f"[Store] Starting job {effect.job}, prompt={effect.prompt[:50]}")
        self._job = effect.job
        self._job_task = asyncio.create_task(self._run_job(effect.job, effect.prompt))

    def _cancel_job(self, job: Optional[int]) -> None:
        if job is None or job != self._job:
            return
        print(f"[Store] Cancelling job {job}")
        self._job = None
        task = self._job_task
        if task is not None and not task.done():
            task.cancel()
        self.client.cancel()

    def _send_for(self, job: int, action: Action) -> None:
        # không đẩy action của job đã bị hủy
        if self._job == job:
            self.send(action)

    async def _run_job(self, job: int, prompt: str) -> None:
        try:
            async for event in self.client.submit(prompt):
                self._send_for(job, JobEventReceived(job=job, event=event))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._send_for(job, JobFailed(job=job, error=e))
        else:
            self._send_for(job, JobFinished(job=job))
