# core/queue_client.py

import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from config.settings import settings as default_settings

from .decoder import decode_image_result
from .errors import JobClientBusyError, JobConnectionError, JobProtocolError
from .model import JobEvent, LogLine

_QUEUE_STATUS = {
    "IN_QUEUE": "queued",
    "IN_PROGRESS": "in_progress",
    "COMPLETED": "completed",
}

_END = object()


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


def _json_body(r: httpx.Response) -> Any:
    try:
        return r.json()
    except ValueError:
        raise JobProtocolError(f"Queue trả về body không phải JSON: {r.text[:200]}", r.status_code)


def _raise_for_status(r: httpx.Response) -> None:
    if r.status_code < 400:
        return
    detail: Any = r.text[:500]
    try:
        body = r.json()
        if isinstance(body, dict) and "detail" in body:
            detail = body["detail"]
    except ValueError:
        pass
    print(f"[JobClient] ERROR: queue returned {r.status_code}: {detail}")
    raise JobProtocolError(f"Queue trả về {r.status_code}: {detail}", r.status_code)


class JobStream:
    """
    Stream sự kiện của một job. Sự kiện được đẩy từ task nền qua asyncio.Queue,
    nên close() có thể đóng stream từ bên ngoài ngay cả khi đang có người đọc.
    """

    def __init__(self, client: "JobClient", prompt: str):
        self.job_id = prompt
        self._client = client
        self._events: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._task = asyncio.create_task(self._pump())

    async def _pump(self) -> None:
        try:
            async for event in self._client._subscribe(self.job_id):
                self._events.put_nowait(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._events.put_nowait(_Failure(e))
        else:
            self._events.put_nowait(_END)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        # đánh thức người đang chờ __anext__
        self._events.put_nowait(_END)
        self._client._release(self)

    def __aiter__(self) -> AsyncIterator[JobEvent]:
        return self

    async def __anext__(self) -> JobEvent:
        if self._closed:
            raise StopAsyncIteration
        item = await self._events.get()
        if self._closed or item is _END:
            self.close()
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self.close()
            raise item.error
        return item


class JobClient:
    """
    Client cho queue API (fal.ai): submit prompt, poll trạng thái, lấy kết quả.
    Mỗi instance chỉ có tối đa một stream đang mở.
    """

    def __init__(
        self,
        queue_url: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        include_logs: Optional[bool] = None,
        cancel_remote: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings=default_settings,
    ):
        self.queue_url = (queue_url or settings.FAL_QUEUE_URL).rstrip("/")
        self.model = (model or settings.FAL_MODEL).strip("/")
        self.api_key = api_key if api_key is not None else settings.FAL_KEY
        self.poll_interval = settings.POLL_INTERVAL if poll_interval is None else poll_interval
        self.timeout = settings.REQUEST_TIMEOUT if timeout is None else timeout
        self.include_logs = settings.INCLUDE_LOGS if include_logs is None else include_logs
        self.cancel_remote = settings.CANCEL_REMOTE_ON_ABORT if cancel_remote is None else cancel_remote
        self._transport = transport
        self._active: Optional[JobStream] = None

    @property
    def active(self) -> bool:
        return self._active is not None

    def submit(self, prompt: str) -> JobStream:
        if self._active is not None:
            raise JobClientBusyError(f"Đang có job khác chạy: {self._active.job_id[:50]}")
        stream = JobStream(self, prompt)
        self._active = stream
        stream.start()
        return stream

    def cancel(self) -> None:
        """Đóng stream đang chạy (nếu có). Gọi khi không có job -> không làm gì."""
        stream = self._active
        if stream is None:
            return
        print(f"[JobClient] Cancelling job prompt={stream.job_id[:50]}")
        stream.close()

    def _release(self, stream: JobStream) -> None:
        if self._active is stream:
            self._active = None

    def _http(self) -> httpx.AsyncClient:
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Key {self.api_key}"
        return httpx.AsyncClient(timeout=self.timeout, headers=headers, transport=self._transport)

    def _request_urls(self, request_id: str) -> Dict[str, str]:
        # URL trạng thái/kết quả dùng app id (2 phần đầu của model path)
        app_id = "/".join(self.model.split("/")[:2])
        base = f"{self.queue_url}/{app_id}/requests/{request_id}"
        return {
            "status_url": f"{base}/status",
            "response_url": base,
            "cancel_url": f"{base}/cancel",
        }

    async def _subscribe(self, prompt: str) -> AsyncIterator[JobEvent]:
        try:
            async with self._http() as client:
                # POST chạy trong task riêng: bị hủy giữa chừng vẫn lấy được request_id để hủy phía queue
                enqueue = asyncio.ensure_future(self._enqueue(client, prompt))
                try:
                    handle = await asyncio.shield(enqueue)
                    async for event in self._poll(client, prompt, handle):
                        yield event
                except asyncio.CancelledError:
                    await self._abort(client, enqueue)
                    raise
        except httpx.RequestError as e:
            print(f"[JobClient] ERROR: connection failed: {e!r}")
            raise JobConnectionError(str(e) or e.__class__.__name__) from e

    async def _abort(self, client: httpx.AsyncClient, enqueue: asyncio.Future) -> None:
        if not self.cancel_remote:
            enqueue.cancel()
            return
        try:
            handle = await enqueue
        except (JobProtocolError, httpx.RequestError) as e:
            print(f"[JobClient] WARNING: enqueue failed while cancelling: {e!r}")
            return
        await self._cancel_remote(client, handle["cancel_url"])

    async def _enqueue(self, client: httpx.AsyncClient, prompt: str) -> Dict[str, str]:
        url = f"{self.queue_url}/{self.model}"
        print(f"[JobClient] Submitting to {url}, prompt={prompt[:50]}")
        r = await client.post(url, json={"prompt": prompt})
        _raise_for_status(r)
        data = _json_body(r)
        request_id = data.get("request_id") if isinstance(data, dict) else None
        if not request_id:
            raise JobProtocolError(f"Queue không trả về request_id: {data}")
        print(f"[JobClient] Got request_id: {request_id}")

        handle = self._request_urls(request_id)
        for key in handle:
            if isinstance(data.get(key), str):
                handle[key] = data[key]
        handle["request_id"] = request_id
        return handle

    async def _poll(
        self, client: httpx.AsyncClient, prompt: str, handle: Dict[str, str]
    ) -> AsyncIterator[JobEvent]:
        params = {"logs": "1"} if self.include_logs else None
        last_status: Optional[str] = None
        seen_logs = 0

        while True:
            r = await client.get(handle["status_url"], params=params)
            _raise_for_status(r)
            data = _json_body(r)
            if not isinstance(data, dict):
                raise JobProtocolError(f"Trạng thái không hợp lệ: {data}")
            if data.get("error"):
                raise JobProtocolError(f"Job thất bại: {data['error']}")

            raw_status = data.get("status")
            status = _QUEUE_STATUS.get(raw_status)
            if status is None:
                raise JobProtocolError(f"Trạng thái không xác định: {raw_status}")

            if status == "completed":
                print(f"[JobClient] Job {handle['request_id']} completed")
                if isinstance(data.get("response_url"), str):
                    handle["response_url"] = data["response_url"]
                break

            logs = self._parse_logs(data.get("logs"))
            new_logs = logs[seen_logs:]
            seen_logs = len(logs)
            if status != last_status or new_logs:
                if status != last_status:
                    print(f"[JobClient] Job {handle['request_id']} -> {status}")
                last_status = status
                position = data.get("queue_position")
                yield JobEvent(
                    job_id=prompt,
                    status=status,
                    logs=new_logs,
                    queue_position=position if isinstance(position, int) else None,
                )

            await asyncio.sleep(self.poll_interval)

        r = await client.get(handle["response_url"])
        _raise_for_status(r)
        result = decode_image_result(_json_body(r))
        yield JobEvent(job_id=prompt, status="completed", result=result)

    @staticmethod
    def _parse_logs(raw: Any) -> List[LogLine]:
        if not isinstance(raw, list):
            return []
        lines = []
        for entry in raw:
            if isinstance(entry, dict) and isinstance(entry.get("message"), str):
                lines.append(
                    LogLine(
                        message=entry["message"],
                        level=entry.get("level") if isinstance(entry.get("level"), str) else None,
                        timestamp=entry.get("timestamp") if isinstance(entry.get("timestamp"), str) else None,
                    )
                )
        return lines

    async def _cancel_remote(self, client: httpx.AsyncClient, cancel_url: str) -> None:
        try:
            r = await client.put(cancel_url)
            print(f"[JobClient] Remote cancel {cancel_url}, status={r.status_code}")
        except httpx.HTTPError as e:
            print(f"[JobClient] WARNING: remote cancel failed: {e!r}")
