"""
任务模型 - 定义任务状态与生命周期

对应队列中 builds 集合的文档结构：
status / projectId / sourceUrl / version / updatedAt / errorLog / aabUrl / apkUrl
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """任务状态枚举"""
    QUEUED = "queued"
    BUILDING = "building"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILED)

    def can_transition_to(self, target: JobStatus) -> bool:
        """状态只能单向前进：queued → building → success/failed"""
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[JobStatus, tuple[JobStatus, ...]] = {
    JobStatus.QUEUED: (JobStatus.BUILDING,),
    JobStatus.BUILDING: (JobStatus.SUCCESS, JobStatus.FAILED),
    JobStatus.SUCCESS: (),
    JobStatus.FAILED: (),
}


class ChangeType(str, Enum):
    """队列变更类型"""
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class JobArtifacts(BaseModel):
    """任务产物下载地址"""
    aab_url: str
    apk_url: str


class Job(BaseModel):
    """任务实体"""
    job_id: str = Field(..., description="队列分配的文档ID")
    project_id: str = Field("", alias="projectId")
    source_url: str = Field("", alias="sourceUrl")
    version: str = ""

    # 状态
    status: JobStatus = JobStatus.QUEUED
    updated_at: datetime | None = Field(None, alias="updatedAt")

    # 结果
    error_log: str | None = Field(None, alias="errorLog")
    aab_url: str | None = Field(None, alias="aabUrl")
    apk_url: str | None = Field(None, alias="apkUrl")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_record(cls, job_id: str, record: dict[str, Any]) -> Job:
        """由队列文档构建任务（未知字段忽略）"""
        return cls.model_validate({**record, "job_id": job_id})

    def to_record(self) -> dict[str, Any]:
        """转换为队列文档（驼峰字段名，不含job_id与空值）"""
        record = self.model_dump(by_alias=True, exclude={"job_id"}, exclude_none=True)
        record["status"] = self.status.value
        return record

    @property
    def is_queued(self) -> bool:
        return self.status == JobStatus.QUEUED


class JobChange(BaseModel):
    """队列视图中的单条变更通知"""
    change_type: ChangeType
    job_id: str
    job: Job | None = None
