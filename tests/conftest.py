"""测试共用的夹具：内存中的 FTP 服务器替身与图片生成工具。"""

from __future__ import annotations

import ftplib
import posixpath
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image


class FakeFtpServer:
    """模拟 FTP 服务器的状态，供多个 FakeFTP 会话共享。"""

    def __init__(self) -> None:
        self.directories: set[str] = {"/"}
        self.files: dict[str, bytes] = {}
        self.sessions: list["FakeFTP"] = []
        self.refuse_connect = False
        self.reject_login = False
        self.read_only = False
        self.reject_uploads_containing: Optional[str] = None
        self.drop_connection_after: Optional[int] = None
        self.reject_directories_containing: Optional[str] = None
        self.garbled_greeting = False
        self.garbled_pwd = False
        self.uploads = 0

    def factory(self, *args, **kwargs) -> "FakeFTP":
        client = FakeFTP(self, **kwargs)
        self.sessions.append(client)
        return client

    @property
    def open_sessions(self) -> list["FakeFTP"]:
        return [session for session in self.sessions if session.sock is not None]


def _decode_reply(raw: bytes) -> str:
    """与 ftplib.FTP.getline 一样按 UTF-8 解码服务器响应。"""

    return raw.decode("utf-8")


class FakeFTP:
    """实现 ftplib.FTP 中被用到的那部分接口。"""

    def __init__(self, server: FakeFtpServer, timeout: Optional[float] = None, encoding: str = "utf-8") -> None:
        self.server = server
        self.timeout = timeout
        self.encoding = encoding
        self.sock: Optional[object] = None
        self.passive: Optional[bool] = None
        self.current = "/"

    def connect(self, host: str = "", port: int = 0, timeout: Optional[float] = None) -> str:
        if self.server.refuse_connect:
            raise ConnectionRefusedError(f"[Errno 111] Connection refused: {host}")
        self.sock = object()
        if self.server.garbled_greeting:
            _decode_reply(b"220 \xb7\xfe\xce\xf1\xc6\xf7 ready")
        return "220 Welcome"

    def login(self, user: str = "", passwd: str = "") -> str:
        self._require_connection()
        if self.server.reject_login:
            raise ftplib.error_perm("530 Login incorrect.")
        return "230 Login successful."

    def set_pasv(self, value: bool) -> None:
        self.passive = value

    def pwd(self) -> str:
        self._require_connection()
        if self.server.garbled_pwd:
            _decode_reply(b"257 \"/\xcd\xbc\xc6\xac\"")
        return self.current

    def cwd(self, path: str) -> str:
        self._require_connection()
        if path not in self.server.directories:
            raise ftplib.error_perm(f"550 {path}: No such file or directory")
        self.current = path
        return "250 Directory successfully changed."

    def mkd(self, path: str) -> str:
        self._require_connection()
        if self.server.read_only or (
            self.server.reject_directories_containing and self.server.reject_directories_containing in path
        ):
            raise ftplib.error_perm("550 Permission denied.")
        if posixpath.dirname(path) not in self.server.directories:
            raise ftplib.error_perm(f"550 {path}: parent missing")
        self.server.directories.add(path)
        return path

    def storbinary(self, cmd: str, fp) -> str:
        self._require_connection()
        path = cmd[len("STOR ") :]
        limit = self.server.drop_connection_after
        if limit is not None and self.server.uploads >= limit:
            self.sock = None
            raise ConnectionResetError("[Errno 104] Connection reset by peer")
        if self.server.reject_uploads_containing and self.server.reject_uploads_containing in path:
            raise ftplib.error_perm("553 Could not create file.")
        if posixpath.dirname(path) not in self.server.directories:
            raise ftplib.error_perm("553 Could not create file.")
        self.server.files[path] = fp.read()
        self.server.uploads += 1
        return "226 Transfer complete."

    def quit(self) -> str:
        self._require_connection()
        self.sock = None
        return "221 Goodbye."

    def close(self) -> None:
        self.sock = None

    def _require_connection(self) -> None:
        if self.sock is None:
            raise BrokenPipeError("[Errno 32] Broken pipe")


@pytest.fixture
def ftp_server() -> FakeFtpServer:
    return FakeFtpServer()


@pytest.fixture
def image_folder(tmp_path: Path) -> Path:
    """包含两张有效图片、一张损坏图片以及一个无关文件的输入目录。"""

    folder = tmp_path / "input"
    folder.mkdir()
    Image.new("RGB", (2400, 1600), "blue").save(folder / "cat.jpg")
    Image.new("RGB", (300, 500), "green").save(folder / "dog.PNG")
    (folder / "broken.jpg").write_text("not an image")
    (folder / "notes.txt").write_text("hello")
    return folder
