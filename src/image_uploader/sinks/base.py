"""输出目标的抽象接口。"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType
from typing import Optional, Type


class OutputSink(ABC):
    """接收编码结果的目标：本地目录或远程 FTP 目录。

    ``open`` 与 ``close`` 界定一次批处理持有资源的范围，推荐通过 ``with`` 使用。
    """

    def open(self) -> None:
        """获取运行期间需要的资源（例如 FTP 连接）。"""

    def close(self) -> None:
        """释放 ``open`` 获取的资源，可重复调用。"""

    @abstractmethod
    def ensure_container(self, relative_path: str = "") -> None:
        """确保相对目录存在，空字符串表示输出根目录。"""

    @abstractmethod
    def materialize(self, relative_path: str, payload: bytes) -> None:
        """将字节写入相对路径，已存在时覆盖。"""

    @abstractmethod
    def describe(self) -> str:
        """便于日志输出的目标描述。"""

    def __enter__(self) -> "OutputSink":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()
