"""
归档条目提取器 - 从 .apks（zip）中取出单个条目

职责：
1. 按精确名称定位条目（其余内容忽略）
2. 流式写出到目标文件
3. 条目不存在时不产生输出文件

测试要点：
- test_extract_entry: 正常提取，字节一致
- test_extract_missing_entry: 条目不存在
- test_extract_corrupt_archive: 归档损坏
"""

from __future__ import annotations

import shutil
import zipfile
from pathlib import Path

from ..interfaces import ArchiveError, IArchiveExtractor

CHUNK_SIZE = 1024 * 1024


class ArchiveExtractor(IArchiveExtractor):
    """zip 归档条目提取器"""

    def extract_entry(self, archive_path: Path, entry_name: str, dest_path: Path) -> bool:
        """提取单个条目"""
        try:
            with zipfile.ZipFile(archive_path) as zf:
                try:
                    info = zf.getinfo(entry_name)
                except KeyError:
                    return False

                dest_path.parent.mkdir(parents=True, exist_ok=True)
                try:
                    with zf.open(info) as src, open(dest_path, "wb") as dst:
                        shutil.copyfileobj(src, dst, CHUNK_SIZE)
                except Exception:
                    dest_path.unlink(missing_ok=True)
                    raise
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveError(f"归档读取失败: {archive_path}: {e}") from e

        return True
