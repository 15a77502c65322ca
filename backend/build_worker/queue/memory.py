"""
内存任务队列 - 进程内实现（测试与本地演练用）

职责：
1. 以锁保护的字典保存任务文档
2. 条件式状态迁移（与 Firestore 事务语义一致）
3. 向所有订阅流推送 queued 视图的变更
4. 记录状态迁移历史便于断言
"""

from __future__ import annotations

import threading

from ..interfaces import IJobQueue, InvalidTransitionError
from ..models import ChangeType, Job, JobArtifacts, JobChange, JobStatus, utc_now
from .stream import ChangeStream


class MemoryJobQueue(IJobQueue):
    """内存队列实现"""

    def __init__(self):
        self._lock = threading.RLock()
        self._jobs: dict[str, Job] = {}
        self._streams: list[ChangeStream] = []
        self.history: list[tuple[str, JobStatus]] = []  # (job_id, 新状态)

    def submit(self, job: Job) -> Job:
        """写入一个任务；若为 queued 则通知订阅者"""
        with self._lock:
            stored = job.model_copy(deep=True)
            stored.updated_at = utc_now()
            self._jobs[job.job_id] = stored
            if stored.is_queued:
                self._publish(ChangeType.ADDED, stored)
            return stored.model_copy(deep=True)

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def claim(self, job_id: str) -> Job | None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status != JobStatus.QUEUED:
                return None
            self._transition(job, JobStatus.BUILDING)
            self._publish(ChangeType.REMOVED, job)
            return job.model_copy(deep=True)

    def complete(self, job_id: str, artifacts: JobArtifacts) -> None:
        with self._lock:
            job = self._require(job_id)
            self._transition(job, JobStatus.SUCCESS)
            job.aab_url = artifacts.aab_url
            job.apk_url = artifacts.apk_url

    def fail(self, job_id: str, error_log: str) -> None:
        with self._lock:
            job = self._require(job_id)
            self._transition(job, JobStatus.FAILED)
            job.error_log = error_log

    def watch_queued(self) -> ChangeStream:
        with self._lock:
            stream = ChangeStream()
            self._streams.append(stream)
            for job in self._jobs.values():
                if job.is_queued:
                    stream.put(JobChange(
                        change_type=ChangeType.ADDED,
                        job_id=job.job_id,
                        job=job.model_copy(deep=True),
                    ))
            return stream

    def close(self) -> None:
        with self._lock:
            for stream in self._streams:
                stream.close()
            self._streams.clear()

    def transitions(self, job_id: str) -> list[JobStatus]:
        """某任务的状态迁移序列"""
        with self._lock:
            return [status for jid, status in self.history if jid == job_id]

    def _require(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise InvalidTransitionError(f"任务不存在: {job_id}")
        return job

    def _transition(self, job: Job, target: JobStatus) -> None:
        if not job.status.can_transition_to(target):
            raise InvalidTransitionError(
                f"非法状态迁移: {job.job_id}: {job.status.value} → {target.value}"
            )
        job.status = target
        job.updated_at = utc_now()
        self.history.append((job.job_id, target))

    def _publish(self, change_type: ChangeType, job: Job) -> None:
        change = JobChange(change_type=change_type, job_id=job.job_id, job=job.model_copy(deep=True))
        for stream in self._streams:
            stream.put(change)
