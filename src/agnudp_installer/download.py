"""
hysteria 바이너리 다운로드 모듈
재시도/백오프 및 전체 제한 시간 지원
"""

import os
import platform
import tempfile
import time
from typing import Optional

import requests

from .errors import DownloadError, UnsupportedPlatform
from .logger import get_logger

ARCHITECTURES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
    "i386": "386",
    "i686": "386",
}

CHUNK_SIZE = 64 * 1024
CONNECT_TIMEOUT = 10
READ_TIMEOUT = 30
RETRY_STATUSES = (429, 500, 502, 503, 504)


def detect_arch(machine: Optional[str] = None) -> str:
    """platform.machine() 값을 릴리즈 아키텍처 이름으로 변환"""
    machine = (machine or platform.machine()).lower()
    if machine not in ARCHITECTURES:
        raise UnsupportedPlatform(f"Unsupported architecture: {machine}")
    return ARCHITECTURES[machine]


def release_url(repo_url: str, version: str, arch: str) -> str:
    return f"{repo_url.rstrip('/')}/releases/download/{version}/hysteria-linux-{arch}"


def is_retryable(exc: requests.exceptions.RequestException) -> bool:
    """연결 실패, 타임아웃, 일시적 서버 오류만 재시도 대상"""
    if isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return True
    response = getattr(exc, "response", None)
    return response is not None and response.status_code in RETRY_STATUSES


class BinaryDownloader:
    """바이너리 다운로드 (임시 파일로 받은 뒤 경로 반환)

    재시도, 재시도 간 대기, 각 시도의 타임아웃이 모두 max_time 안에서 이루어진다.
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 retries: int = 5, retry_delay: int = 10, max_time: int = 60,
                 clock=time.monotonic, sleep=time.sleep):
        self.session = session or requests.Session()
        self.retries = retries
        self.retry_delay = retry_delay
        self.max_time = max_time
        self.clock = clock
        self.sleep = sleep
        self.logger = get_logger()

    def fetch(self, url: str, destination_dir: Optional[str] = None) -> str:
        """url을 임시 파일로 다운로드. 실패 시 부분 파일 삭제 후 DownloadError"""
        self.logger.info(f"Downloading hysteria binary from {url}...")
        deadline = self.clock() + self.max_time
        last_error = None

        for attempt in range(self.retries + 1):
            if attempt:
                self.logger.warning(f"Download attempt {attempt} failed ({last_error}), retrying...")
                self.sleep(max(0, min(self.retry_delay, deadline - self.clock())))
            if self.clock() >= deadline:
                break
            try:
                return self._attempt(url, destination_dir, deadline)
            except requests.exceptions.RequestException as e:
                if not is_retryable(e):
                    raise DownloadError(f"Download failed! Check your network. ({e})") from e
                last_error = e
            except OSError as e:
                raise DownloadError(f"Unable to write downloaded file: {e}") from e

        if last_error is None:
            raise DownloadError(f"Download exceeded {self.max_time}s: {url}")
        raise DownloadError(f"Download failed! Check your network. ({last_error})") from last_error

    def _attempt(self, url: str, destination_dir: Optional[str], deadline: float) -> str:
        """한 번의 다운로드 시도. 타임아웃은 남은 시간으로 제한"""
        remaining = deadline - self.clock()
        timeout = (min(CONNECT_TIMEOUT, remaining), min(READ_TIMEOUT, remaining))

        tmp = tempfile.NamedTemporaryFile(prefix="hyservinst.", dir=destination_dir, delete=False)
        try:
            with tmp:
                with self.session.get(url, stream=True, timeout=timeout) as response:
                    response.raise_for_status()
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if self.clock() > deadline:
                            raise DownloadError(f"Download exceeded {self.max_time}s: {url}")
                        if chunk:
                            tmp.write(chunk)
            if os.path.getsize(tmp.name) == 0:
                raise DownloadError(f"Downloaded file is empty: {url}")
        except Exception:
            os.unlink(tmp.name)
            raise

        self.logger.debug(f"Downloaded {os.path.getsize(tmp.name)} bytes to {tmp.name}")
        return tmp.name
