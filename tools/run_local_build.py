import argparse
import logging
import sys
import uuid
from pathlib import Path


def _add_backend_to_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    backend_root = repo_root / "backend"
    if str(backend_root) not in sys.path:
        sys.path.insert(0, str(backend_root))


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run the build pipeline once against an in-memory queue (no Firestore)."
    )
    parser.add_argument("source_url", help="要克隆的源码仓库地址")
    parser.add_argument("--version", default="0.0.1", help="版本号（用于产物地址）")
    parser.add_argument("--project-id", default="local", help="项目ID")
    parser.add_argument(
        "--config",
        default="config/worker.yaml",
        help="运行期配置文件（默认：config/worker.yaml）",
    )
    args = parser.parse_args()

    _add_backend_to_path()
    from build_worker.config import reload_config, setup_logging  # type: ignore
    from build_worker.models import Job, JobStatus  # type: ignore
    from build_worker.pipeline import JobProcessor  # type: ignore
    from build_worker.queue import MemoryJobQueue  # type: ignore

    config = reload_config(args.config)
    config.logging.log_to_file = False
    setup_logging(config.logging)
    logging.getLogger("build_worker.pipeline.runner").setLevel(logging.DEBUG)

    queue = MemoryJobQueue()
    job = queue.submit(Job(
        job_id=f"local-{uuid.uuid4().hex[:8]}",
        project_id=args.project_id,
        source_url=args.source_url,
        version=args.version,
    ))

    JobProcessor(queue, config=config).process(job.job_id)

    result = queue.get(job.job_id)
    print(f"status: {result.status.value}")
    if result.status == JobStatus.SUCCESS:
        print(f"aabUrl: {result.aab_url}")
        print(f"apkUrl: {result.apk_url}")
        return 0
    print(f"errorLog:\n{result.error_log}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
