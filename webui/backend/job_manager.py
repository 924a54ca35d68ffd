"""Job lifecycle management: submit, cancel, poll, SSE streaming.

Each studio action that talks to Gemini runs as a job on its own thread.
Only one job runs at a time; its progress lines are pushed onto an asyncio
queue that the SSE route drains.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from typing import AsyncIterator, Callable

from sketchflow.errors import StudioBusy

from .models import JobStatus

log = logging.getLogger(__name__)


class JobManager:
    def __init__(self) -> None:
        self._jobs: dict[str, dict] = {}
        self._queues: dict[str, asyncio.Queue] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.Lock()
        self._active: str | None = None
        self._active_push: Callable[[dict], None] | None = None

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def active_job(self) -> str | None:
        return self._active

    def submit(
        self,
        label: str,
        target: Callable[[], object],
        error_getter: Callable[[], str | None] = lambda: None,
        cancel: Callable[[], None] | None = None,
    ) -> str:
        """Start ``target`` in a background thread. Returns the job_id immediately.

        ``error_getter`` is consulted after ``target`` returns; a non-empty
        value marks the job as failed.
        """
        with self._lock:
            if self._active is not None:
                raise StudioBusy(f"Job {self._active} is still running")
            job_id = str(uuid.uuid4())[:8]
            self._active = job_id

        queue: asyncio.Queue = asyncio.Queue()
        self._queues[job_id] = queue
        self._jobs[job_id] = {
            "label": label,
            "state": "queued",
            "started_at": None,
            "finished_at": None,
            "error": None,
            "done": threading.Event(),
            "_cancel": cancel,
        }

        loop = self._loop or asyncio.get_running_loop()

        def _push(msg: dict) -> None:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, msg)
            except RuntimeError:
                log.debug("Event loop closed; dropping message for job %s", job_id)

        thread = threading.Thread(
            target=self._run_job,
            args=(job_id, target, error_getter, _push),
            daemon=True,
        )
        thread.start()
        return job_id

    def progress(self, text: str) -> None:
        """Progress callback handed to the studio; routes text to the current job."""
        push = self._active_push
        if push is not None:
            push({"type": "log", "text": text, "ts": time.time()})

    def cancel(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if not job or job["state"] not in ("queued", "running"):
            return
        if job["_cancel"] is not None:
            job["_cancel"]()
        job["state"] = "cancelled"

    def status(self, job_id: str) -> JobStatus | None:
        job = self._jobs.get(job_id)
        if not job:
            return None
        return JobStatus(
            job_id=job_id,
            label=job["label"],
            state=job["state"],
            started_at=job["started_at"],
            finished_at=job["finished_at"],
            error=job["error"],
        )

    def wait(self, job_id: str, timeout: float | None = None) -> JobStatus | None:
        """Block until the job finishes (or ``timeout`` elapses)."""
        job = self._jobs.get(job_id)
        if not job:
            return None
        job["done"].wait(timeout)
        return self.status(job_id)

    async def stream(self, job_id: str) -> AsyncIterator[dict]:
        """Async generator: yields SSE message dicts until job completes."""
        queue = self._queues.get(job_id)
        if queue is None:
            return
        while True:
            msg = await queue.get()
            yield msg
            if msg.get("type") == "status":
                break

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run_job(
        self,
        job_id: str,
        target: Callable[[], object],
        error_getter: Callable[[], str | None],
        push_raw: Callable[[dict], None],
    ) -> None:
        job = self._jobs[job_id]
        job["state"] = "running"
        job["started_at"] = time.time()
        self._active_push = push_raw
        try:
            target()
            error = error_getter()
            if job["state"] != "cancelled":
                job["state"] = "failed" if error else "done"
                job["error"] = error or None
        except Exception as exc:
            log.exception("Job %s failed", job_id)
            job["state"] = "failed"
            job["error"] = str(exc)
        finally:
            job["finished_at"] = time.time()
            self._active_push = None
            with self._lock:
                self._active = None
            push_raw({"type": "status", "state": job["state"], "error": job["error"]})
            job["done"].set()


# Singleton
job_manager = JobManager()
