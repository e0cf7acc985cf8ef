"""报告生成工具。"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from image_uploader.core.models import MAX_LISTED_ERRORS, BatchResult, FileOutcome

HEADER = ["source_path", "relative_dir", "status", "renditions", "message"]


def format_summary(result: BatchResult, max_errors: int = MAX_LISTED_ERRORS) -> str:
    """生成适合终端或日志输出的汇总文本。"""

    return "\n".join(result.summary_lines(max_errors=max_errors))


def write_csv_report(outcomes: Iterable[FileOutcome], output_dir: Path, filename: str) -> Path:
    """将处理结果写入 CSV 报告。"""

    report_path = output_dir / filename
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for record in outcomes:
            writer.writerow(
                [
                    str(record.source_path),
                    record.relative_dir or "",
                    record.status,
                    record.renditions,
                    record.message or "",
                ]
            )
    return report_path
