"""进度更新的数据模型。"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BatchProgress:
    """批处理过程中的进度快照，在处理每个文件之前发出。"""

    current_index: int
    total_count: int
    current_file_name: str = ""

    @property
    def fraction(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return self.current_index / self.total_count

    @property
    def percentage(self) -> float:
        return self.fraction * 100
