"""
数据模型层 - 定义系统核心数据结构

- Job: 任务状态与生命周期
- JobChange: 队列变更通知
- JobArtifacts: 产物下载地址
"""

from .job import ChangeType, Job, JobArtifacts, JobChange, JobStatus, utc_now

__all__ = [
    "Job",
    "JobStatus",
    "JobArtifacts",
    "JobChange",
    "ChangeType",
    "utc_now",
]
