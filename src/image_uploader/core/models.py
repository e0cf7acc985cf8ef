"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

MAX_LISTED_ERRORS = 5


@dataclass(slots=True)
class SourceImage:
    """扫描阶段得到的源图片信息。"""

    source_path: Path

    @property
    def file_name(self) -> str:
        return self.source_path.name

    @property
    def base_name(self) -> str:
        """不含扩展名的文件名，用于构建输出路径。"""

        return self.source_path.stem


@dataclass(frozen=True, slots=True)
class Rendition:
    """单个（源图片，档位）组合的编码结果。"""

    relative_path: str
    payload: bytes = field(repr=False)
    size: tuple[int, int]
    quality: int


@dataclass(slots=True)
class FileOutcome:
    """记录单个文件的处理结果（用于报告/日志）。"""

    source_path: Path
    status: str
    relative_dir: Optional[str] = None
    renditions: int = 0
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "processed"


@dataclass(slots=True)
class BatchResult:
    """一次批处理的汇总结果。"""

    total_files: int = 0
    processed_files: int = 0
    failed_files: int = 0
    error_messages: list[str] = field(default_factory=list)
    outcomes: list[FileOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def is_successful(self) -> bool:
        return self.failed_files == 0 and self.processed_files > 0

    def record(self, outcome: FileOutcome) -> None:
        """累计单个文件的结果。"""

        self.outcomes.append(outcome)
        if outcome.succeeded:
            self.processed_files += 1
            return
        self.failed_files += 1
        name = outcome.source_path.name
        if outcome.message:
            self.error_messages.append(f"处理失败 {name}: {outcome.message}")
        else:
            self.error_messages.append(f"处理失败 {name}")

    def summary_lines(self, max_errors: int = MAX_LISTED_ERRORS) -> list[str]:
        """生成统计行与最多 ``max_errors`` 条错误信息。"""

        lines = [f"共 {self.total_files} 个文件：成功 {self.processed_files} 个，失败 {self.failed_files} 个。"]
        if self.cancelled:
            lines.append("任务已被取消。")
        shown = self.error_messages[:max_errors]
        lines.extend(f"- {message}" for message in shown)
        hidden = len(self.error_messages) - len(shown)
        if hidden > 0:
            lines.append(f"+{hidden} more")
        return lines


@dataclass(slots=True)
class ProbeResult:
    """FTP 连接测试结果。"""

    ok: bool
    message: str
    detail: str = ""
