"""
任务监听器 - 订阅 queued 视图并分发任务

职责：
1. 消费队列的变更事件流（唯一消费者）
2. 每条 added + queued 通知异步交给 JobProcessor，不阻塞事件流
3. 事件流出错时记录日志并退出（不自动重连）
4. stop() 关闭事件流，shutdown() 等待在途任务完成

通知语义为至少一次：重复投递由处理器的原子认领兜底。
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from ..interfaces import IChangeStream, IJobQueue
from ..models import ChangeType, JobChange, JobStatus
from .processor import JobOutcome, JobProcessor

logger = logging.getLogger(__name__)


class JobWatcher:
    """任务监听器"""

    def __init__(
        self,
        queue: IJobQueue,
        processor: JobProcessor,
        max_jobs: int = 4,
    ):
        self.queue = queue
        self.processor = processor
        self._pool = ThreadPoolExecutor(max_workers=max_jobs, thread_name_prefix="job")
        self._stream: IChangeStream | None = None
        self._lock = threading.Lock()
        self._stopped = False
        self.error: Exception | None = None  # 事件流错误（非正常结束）
        self.futures: list[Future] = []

    def run(self) -> None:
        """阻塞消费事件流，直到 stop() 或事件流出错

        订阅无法建立时异常直接抛出（启动期致命错误）；
        订阅建立后的事件流错误记录在 self.error。
        """
        with self._lock:
            if self._stopped:
                return
            self._stream = self.queue.watch_queued()
        logger.info("Worker 已启动，正在监听 queued 任务...")

        try:
            for change in self._stream:
                self._handle(change)
        except Exception as e:
            self.error = e
            logger.exception("监听任务队列时出错")
        finally:
            logger.info("任务监听已结束")

    def _handle(self, change: JobChange) -> None:
        if change.change_type != ChangeType.ADDED:
            logger.debug(f"[{change.job_id}] 忽略变更: {change.change_type.value}")
            return
        if change.job is not None and change.job.status != JobStatus.QUEUED:
            logger.debug(f"[{change.job_id}] 忽略非 queued 任务")
            return

        project = change.job.project_id if change.job else "?"
        logger.info(f"[{change.job_id}] 发现新任务: project={project}")
        self.futures = [f for f in self.futures if not f.done()]
        self.futures.append(self._pool.submit(self._process, change.job_id))

    def _process(self, job_id: str) -> JobOutcome:
        try:
            return self.processor.process(job_id)
        except Exception:
            logger.exception(f"[{job_id}] 任务处理异常")
            return JobOutcome.FAILED

    def stop(self) -> None:
        """关闭事件流，run() 随之返回"""
        with self._lock:
            self._stopped = True
            stream = self._stream
        if stream is not None:
            stream.close()

    def shutdown(self, wait: bool = True) -> None:
        """停止监听并等待在途任务"""
        self.stop()
        self._pool.shutdown(wait=wait)
