"""
Firestore 队列客户端单元测试（不连接真实服务）
"""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.auth.exceptions import DefaultCredentialsError

from build_worker.interfaces import CredentialError, InvalidTransitionError, QueueError
from build_worker.models import ChangeType, JobArtifacts, JobStatus
from build_worker.queue import firestore as firestore_queue


class TestLoadCredentials:
    """凭据加载测试"""

    def test_missing_credentials_file(self, tmp_path: Path):
        """测试凭据文件不存在为致命错误"""
        with pytest.raises(CredentialError):
            firestore_queue.load_credentials(str(tmp_path / "absent.json"))

    def test_no_default_credentials(self, monkeypatch):
        """测试没有应用默认凭据"""

        def _raise(*args, **kwargs):
            raise DefaultCredentialsError("no ADC")

        monkeypatch.setattr(firestore_queue.google.auth, "default", _raise)
        with pytest.raises(CredentialError):
            firestore_queue.load_credentials(None)

    def test_default_credentials(self, monkeypatch):
        """测试使用应用默认凭据"""
        sentinel = object()
        monkeypatch.setattr(firestore_queue.google.auth, "default", lambda **kwargs: (sentinel, "proj"))
        assert firestore_queue.load_credentials(None) is sentinel


class TestFirestoreJobQueue:
    """客户端生命周期测试"""

    def test_open_without_credentials(self, runtime_config, monkeypatch):
        """测试启动时凭据缺失"""

        def _raise(*args, **kwargs):
            raise DefaultCredentialsError("no ADC")

        monkeypatch.setattr(firestore_queue.google.auth, "default", _raise)
        with pytest.raises(CredentialError):
            firestore_queue.FirestoreJobQueue(runtime_config).open()

    def test_client_requires_open(self, runtime_config):
        """测试未打开时访问客户端"""
        with pytest.raises(QueueError):
            firestore_queue.FirestoreJobQueue(runtime_config).client


@pytest.fixture
def fake_client(monkeypatch) -> MagicMock:
    """不连接服务的客户端（事务装饰器直接调用被装饰函数）"""
    monkeypatch.setattr(firestore_queue.firestore, "transactional", lambda fn: fn)
    return MagicMock()


def _store(client: MagicMock, record: dict | None) -> MagicMock:
    """设置文档读取结果，返回文档引用"""
    snapshot = MagicMock()
    snapshot.exists = record is not None
    snapshot.to_dict.return_value = record
    ref = client.collection.return_value.document.return_value
    ref.get.return_value = snapshot
    return ref


def _change(kind: str, job_id: str, record: dict) -> SimpleNamespace:
    return SimpleNamespace(
        type=SimpleNamespace(name=kind),
        document=SimpleNamespace(id=job_id, to_dict=lambda: record),
    )


RECORD = {"projectId": "p1", "sourceUrl": "https://good.repo", "version": "1.2.3"}


class TestFirestoreClaim:
    """条件认领测试"""

    def test_claim_queued_job(self, runtime_config, fake_client):
        """测试 queued 任务写入 building 与 updatedAt"""
        ref = _store(fake_client, {**RECORD, "status": "queued"})
        queue = firestore_queue.FirestoreJobQueue(runtime_config, client=fake_client)

        job = queue.claim("job-1")

        assert job is not None
        assert job.status == JobStatus.BUILDING
        assert job.source_url == "https://good.repo"
        fake_client.collection.assert_called_with("builds")
        transaction = fake_client.transaction.return_value
        transaction.update.assert_called_once()
        updated_ref, update = transaction.update.call_args.args
        assert updated_ref is ref
        assert update["status"] == "building"
        assert update["updatedAt"] is not None

    @pytest.mark.parametrize("status", ["building", "success", "failed"])
    def test_claim_not_queued(self, runtime_config, fake_client, status):
        """测试已不是 queued 的任务不被认领"""
        _store(fake_client, {**RECORD, "status": status})
        queue = firestore_queue.FirestoreJobQueue(runtime_config, client=fake_client)

        assert queue.claim("job-1") is None
        fake_client.transaction.return_value.update.assert_not_called()

    def test_claim_missing_job(self, runtime_config, fake_client):
        """测试任务不存在"""
        _store(fake_client, None)
        queue = firestore_queue.FirestoreJobQueue(runtime_config, client=fake_client)

        assert queue.claim("job-1") is None
        fake_client.transaction.return_value.update.assert_not_called()


class TestFirestoreFinish:
    """终态回写测试"""

    def test_complete_from_building(self, runtime_config, fake_client):
        """测试 building → success 写入产物地址"""
        _store(fake_client, {**RECORD, "status": "building"})
        queue = firestore_queue.FirestoreJobQueue(runtime_config, client=fake_client)

        queue.complete("job-1", JobArtifacts(aab_url="https://x/a.aab", apk_url="https://x/u.apk"))

        _, update = fake_client.transaction.return_value.update.call_args.args
        assert update["status"] == "success"
        assert update["aabUrl"] == "https://x/a.aab"
        assert update["apkUrl"] == "https://x/u.apk"
        assert "updatedAt" in update

    def test_fail_from_building(self, runtime_config, fake_client):
        """测试 building → failed 写入错误日志"""
        _store(fake_client, {**RECORD, "status": "building"})
        queue = firestore_queue.FirestoreJobQueue(runtime_config, client=fake_client)

        queue.fail("job-1", "[CLONE_SOURCE] stage_failed: boom")

        _, update = fake_client.transaction.return_value.update.call_args.args
        assert update["status"] == "failed"
        assert update["errorLog"] == "[CLONE_SOURCE] stage_failed: boom"

    @pytest.mark.parametrize("record", [{**RECORD, "status": "queued"}, {**RECORD, "status": "success"}, None])
    def test_finish_requires_building(self, runtime_config, fake_client, record):
        """测试非 building 任务不能写终态"""
        _store(fake_client, record)
        queue = firestore_queue.FirestoreJobQueue(runtime_config, client=fake_client)

        with pytest.raises(InvalidTransitionError):
            queue.complete("job-1", JobArtifacts(aab_url="a", apk_url="b"))
        fake_client.transaction.return_value.update.assert_not_called()


class TestFirestoreWatch:
    """变更订阅测试"""

    def _watch(self, runtime_config, client):
        callbacks = []
        handle = MagicMock()
        query = client.collection.return_value.where.return_value
        query.on_snapshot.side_effect = lambda cb: callbacks.append(cb) or handle
        stream = firestore_queue.FirestoreJobQueue(runtime_config, client=client).watch_queued()
        return stream, callbacks[0], handle

    def test_snapshot_changes(self, runtime_config, fake_client):
        """测试 added/modified/removed 变更转为 JobChange"""
        stream, callback, handle = self._watch(runtime_config, fake_client)

        callback(None, [
            _change("ADDED", "a", {**RECORD, "status": "queued"}),
            _change("MODIFIED", "b", {**RECORD, "status": "queued"}),
            _change("REMOVED", "c", {**RECORD, "status": "building"}),
        ], None)
        stream.close()

        changes = list(stream)
        assert [(c.change_type, c.job_id) for c in changes] == [
            (ChangeType.ADDED, "a"),
            (ChangeType.MODIFIED, "b"),
            (ChangeType.REMOVED, "c"),
        ]
        assert changes[0].job.status == JobStatus.QUEUED
        assert changes[2].job.status == JobStatus.BUILDING
        handle.unsubscribe.assert_called_once()

    def test_decode_failure_reaches_consumer(self, runtime_config, fake_client):
        """测试无法解析的文档以错误形式交给消费者"""
        stream, callback, _ = self._watch(runtime_config, fake_client)

        callback(None, [_change("ADDED", "a", {"status": "bogus"})], None)

        with pytest.raises(QueueError):
            next(iter(stream))
        stream.close()

    def test_subscribe_failure(self, runtime_config, fake_client):
        """测试订阅无法建立"""
        query = fake_client.collection.return_value.where.return_value
        query.on_snapshot.side_effect = RuntimeError("permission denied")

        with pytest.raises(QueueError):
            firestore_queue.FirestoreJobQueue(runtime_config, client=fake_client).watch_queued()
