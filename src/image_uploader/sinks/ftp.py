"""FTP 输出：会话封装与上传目标。"""

from __future__ import annotations

import ftplib
import io
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Type

from image_uploader.core.config import RemoteEndpoint
from image_uploader.core.exceptions import (
    ConnectionLostError,
    ContainerCreationError,
    NotConnectedError,
    SinkError,
    UploadFailed,
)
from image_uploader.sinks.base import OutputSink

LOGGER = logging.getLogger(__name__)

FtpFactory = Callable[..., ftplib.FTP]

# 服务器主动关闭控制连接时的响应码
_SERVICE_CLOSING = "421"


def join_remote(base: str, relative_path: str) -> str:
    """拼接远程路径，避免出现重复的 /。"""

    if not relative_path:
        return base
    return f"{base.rstrip('/')}/{relative_path.strip('/')}"


@contextmanager
def _translate_errors(failure: Type[SinkError], action: str) -> Iterator[None]:
    """把 ftplib 的异常转换为项目内的异常类型。

    连接层面的错误（套接字错误、421）转换为 ConnectionLostError，其余为 ``failure``。
    """

    try:
        yield
    except ftplib.error_temp as exc:
        if str(exc).startswith(_SERVICE_CLOSING):
            raise ConnectionLostError(f"{action}: {exc}") from exc
        raise failure(f"{action}: {exc}") from exc
    except (ftplib.error_perm, ftplib.error_reply, ftplib.error_proto) as exc:
        raise failure(f"{action}: {exc}") from exc
    except (OSError, EOFError) as exc:
        raise ConnectionLostError(f"{action}: {exc}") from exc
    except ValueError as exc:
        # 服务器响应无法按 UTF-8 解码
        raise failure(f"{action}: {exc}") from exc


class FtpSession:
    """对 ftplib.FTP 的薄封装，只暴露流水线需要的操作。"""

    def __init__(self, client: ftplib.FTP) -> None:
        self._client = client

    @classmethod
    def connect(cls, endpoint: RemoteEndpoint, ftp_factory: FtpFactory = ftplib.FTP) -> "FtpSession":
        """建立连接、登录并切换到被动模式。

        失败时保证底层连接已关闭，然后抛出 NotConnectedError。
        """

        client = ftp_factory(timeout=endpoint.timeouts.socket_timeout(), encoding="utf-8")
        try:
            client.connect(endpoint.host, endpoint.port, timeout=endpoint.timeouts.connect)
            client.login(endpoint.username, endpoint.password)
            client.set_pasv(True)
        except ftplib.all_errors + (ValueError,) as exc:
            client.close()
            raise NotConnectedError(f"无法连接到 {endpoint.host}:{endpoint.port}: {exc}") from exc

        if getattr(client, "sock", None) is None:
            client.close()
            raise NotConnectedError(f"未能建立与 {endpoint.host}:{endpoint.port} 的会话")

        LOGGER.debug("已连接 FTP %s:%d", endpoint.host, endpoint.port)
        return cls(client)

    def working_directory(self) -> str:
        with _translate_errors(SinkError, "读取当前目录失败"):
            return self._client.pwd()

    def directory_exists(self, path: str) -> bool:
        with _translate_errors(SinkError, f"检查目录失败 {path}"):
            current = self._client.pwd()
            try:
                self._client.cwd(path)
            except ftplib.error_perm:
                return False
            self._client.cwd(current)
            return True

    def create_directory(self, path: str) -> None:
        """逐级创建目录，已存在的层级会被跳过。"""

        parts = [part for part in path.split("/") if part]
        prefix = ""
        for part in parts:
            prefix = f"{prefix}/{part}"
            if self.directory_exists(prefix):
                continue
            with _translate_errors(ContainerCreationError, f"无法创建远程目录 {prefix}"):
                self._client.mkd(prefix)

    def upload_bytes(self, payload: bytes, remote_path: str) -> None:
        """以覆盖模式上传字节数据。"""

        with _translate_errors(UploadFailed, f"上传失败 {remote_path}"):
            response = self._client.storbinary(f"STOR {remote_path}", io.BytesIO(payload))
        if not response or not response.startswith("2"):
            raise UploadFailed(f"上传失败 {remote_path}: {response}")

    def disconnect(self) -> None:
        try:
            self._client.quit()
        except ftplib.all_errors + (ValueError,) as exc:
            LOGGER.debug("QUIT 失败，直接关闭连接: %s", exc)
            self._client.close()


class FtpSink(OutputSink):
    """将编码结果上传到远程目录结构，整个批处理只使用一个连接。"""

    def __init__(self, endpoint: RemoteEndpoint, ftp_factory: FtpFactory = ftplib.FTP) -> None:
        self.endpoint = endpoint
        self._ftp_factory = ftp_factory
        self._session: Optional[FtpSession] = None

    def describe(self) -> str:
        return f"ftp://{self.endpoint.host}:{self.endpoint.port}{self.endpoint.remote_base_path}"

    def open(self) -> None:
        if self._session is None:
            self._session = FtpSession.connect(self.endpoint, self._ftp_factory)

    def close(self) -> None:
        if self._session is not None:
            session, self._session = self._session, None
            session.disconnect()

    def ensure_container(self, relative_path: str = "") -> None:
        session = self._require_session()
        path = join_remote(self.endpoint.remote_base_path, relative_path)
        if path == "/" or session.directory_exists(path):
            return
        session.create_directory(path)

    def materialize(self, relative_path: str, payload: bytes) -> None:
        session = self._require_session()
        session.upload_bytes(payload, join_remote(self.endpoint.remote_base_path, relative_path))

    def _require_session(self) -> FtpSession:
        if self._session is None:
            raise NotConnectedError("FTP 会话尚未建立")
        return self._session
