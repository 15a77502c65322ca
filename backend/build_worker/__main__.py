"""
Worker 入口 - python -m build_worker [--config PATH]

启动顺序：加载配置 → 初始化日志 → 打开队列客户端（凭据缺失即退出）
→ 监听 queued 任务；SIGINT/SIGTERM 时停止监听并等待在途任务。
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys

from .config import reload_config, setup_logging
from .interfaces import BuildWorkerError
from .pipeline import JobProcessor, JobWatcher

logger = logging.getLogger("build_worker")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Watch the build queue and package queued jobs."
    )
    parser.add_argument(
        "--config",
        default="config/worker.yaml",
        help="运行期配置文件（默认：config/worker.yaml）",
    )
    args = parser.parse_args(argv)

    config = reload_config(args.config)
    setup_logging(config.logging)
    config.ensure_dirs()

    from .queue.firestore import FirestoreJobQueue

    queue = FirestoreJobQueue(config)
    try:
        queue.open()
    except BuildWorkerError as e:
        logger.error(f"启动失败: {e}")
        return 1

    watcher = JobWatcher(queue, JobProcessor(queue, config=config), max_jobs=config.concurrency.max_jobs)

    def _stop(signum, _frame) -> None:
        logger.info(f"收到信号 {signum}，停止监听")
        watcher.stop()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    try:
        watcher.run()
    except BuildWorkerError as e:
        logger.error(f"订阅任务队列失败: {e}")
        return 1
    finally:
        watcher.shutdown(wait=True)
        queue.close()

    if watcher.error is not None:
        logger.error(f"任务监听异常结束: {watcher.error}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
