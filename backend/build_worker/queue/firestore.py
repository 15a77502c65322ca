"""
Firestore 任务队列 - builds 集合的客户端封装

职责：
1. 启动时一次性创建客户端（凭据缺失为致命错误）
2. 事务内条件更新实现原子认领（仅当 status 仍为 queued 时写入）
3. 将 on_snapshot 回调转换为 ChangeStream
4. 关闭时取消订阅并释放客户端

依赖：
- google-cloud-firestore
- google-auth（应用默认凭据或服务账号文件）
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import google.auth
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account

from ..config import RuntimeConfig, get_config
from ..interfaces import CredentialError, IJobQueue, InvalidTransitionError, QueueError
from ..models import ChangeType, Job, JobArtifacts, JobChange, JobStatus, utc_now
from .stream import ChangeStream

logger = logging.getLogger(__name__)

_SCOPES = ["https://www.googleapis.com/auth/datastore"]


def load_credentials(credentials_path: str | None = None):
    """加载队列访问凭据；缺失时抛出 CredentialError"""
    if credentials_path:
        path = Path(credentials_path)
        if not path.exists():
            raise CredentialError(f"凭据文件不存在: {path}")
        return service_account.Credentials.from_service_account_file(str(path), scopes=_SCOPES)
    try:
        credentials, _ = google.auth.default(scopes=_SCOPES)
    except DefaultCredentialsError as e:
        raise CredentialError(f"未找到队列访问凭据: {e}") from e
    return credentials


class FirestoreJobQueue(IJobQueue):
    """Firestore 队列实现"""

    def __init__(self, config: RuntimeConfig | None = None, client: firestore.Client | None = None):
        self.config = config or get_config()
        self._client = client
        self._streams: list[ChangeStream] = []

    def open(self) -> FirestoreJobQueue:
        """创建客户端（进程启动时调用一次）"""
        if self._client is None:
            queue_cfg = self.config.queue
            credentials = load_credentials(queue_cfg.credentials_path)
            kwargs: dict[str, Any] = {"credentials": credentials}
            if queue_cfg.project_id:
                kwargs["project"] = queue_cfg.project_id
            if queue_cfg.database:
                kwargs["database"] = queue_cfg.database
            self._client = firestore.Client(**kwargs)
            logger.info(f"已连接任务队列: {self._client.project}/{queue_cfg.collection}")
        return self

    def __enter__(self) -> FirestoreJobQueue:
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def client(self) -> firestore.Client:
        if self._client is None:
            raise QueueError("队列客户端未打开")
        return self._client

    @property
    def collection(self):
        return self.client.collection(self.config.queue.collection)

    def get(self, job_id: str) -> Job | None:
        snapshot = self.collection.document(job_id).get()
        if not snapshot.exists:
            return None
        return Job.from_record(job_id, snapshot.to_dict() or {})

    def claim(self, job_id: str) -> Job | None:
        ref = self.collection.document(job_id)

        @firestore.transactional
        def _claim(transaction) -> dict[str, Any] | None:
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                return None
            data = snapshot.to_dict() or {}
            if data.get("status") != JobStatus.QUEUED.value:
                return None
            update = {"status": JobStatus.BUILDING.value, "updatedAt": utc_now()}
            transaction.update(ref, update)
            return {**data, **update}

        data = _claim(self.client.transaction())
        return Job.from_record(job_id, data) if data is not None else None

    def complete(self, job_id: str, artifacts: JobArtifacts) -> None:
        self._finish(job_id, {
            "status": JobStatus.SUCCESS.value,
            "aabUrl": artifacts.aab_url,
            "apkUrl": artifacts.apk_url,
        })

    def fail(self, job_id: str, error_log: str) -> None:
        self._finish(job_id, {
            "status": JobStatus.FAILED.value,
            "errorLog": error_log,
        })

    def _finish(self, job_id: str, update: dict[str, Any]) -> None:
        """building → success/failed（事务内校验当前状态）"""
        ref = self.collection.document(job_id)
        target = JobStatus(update["status"])

        @firestore.transactional
        def _write(transaction) -> None:
            snapshot = ref.get(transaction=transaction)
            current = (snapshot.to_dict() or {}).get("status") if snapshot.exists else None
            if current is None or not JobStatus(current).can_transition_to(target):
                raise InvalidTransitionError(f"非法状态迁移: {job_id}: {current} → {target.value}")
            transaction.update(ref, {**update, "updatedAt": utc_now()})

        _write(self.client.transaction())

    def watch_queued(self) -> ChangeStream:
        query = self.collection.where(filter=FieldFilter("status", "==", JobStatus.QUEUED.value))
        watch = None

        def _unsubscribe() -> None:
            if watch is not None:
                watch.unsubscribe()

        stream = ChangeStream(on_close=_unsubscribe)

        def _on_snapshot(_docs, changes, _read_time) -> None:
            try:
                for change in changes:
                    doc = change.document
                    stream.put(JobChange(
                        change_type=ChangeType(change.type.name.lower()),
                        job_id=doc.id,
                        job=Job.from_record(doc.id, doc.to_dict() or {}),
                    ))
            except Exception as e:
                stream.put_error(QueueError(f"解析队列变更失败: {e}"))

        try:
            watch = query.on_snapshot(_on_snapshot)
        except Exception as e:
            raise QueueError(f"订阅任务队列失败: {e}") from e
        self._streams.append(stream)
        return stream

    def close(self) -> None:
        for stream in self._streams:
            stream.close()
        self._streams.clear()
        if self._client is not None:
            self._client.close()
            self._client = None
