"""
공용 테스트 픽스처 및 가짜 외부 도구
"""

import pytest
from agnudp_installer.logger import init_logger


@pytest.fixture(autouse=True)
def logger(tmp_path_factory):
    """테스트마다 임시 디렉토리에 로거 초기화"""
    return init_logger(str(tmp_path_factory.mktemp("logs")), "DEBUG", False)


class FakeInstaller:
    """명령 존재 여부와 실행 기록을 흉내내는 패키지 설치기"""

    def __init__(self, commands=(), fail=False):
        self.commands = set(commands)
        self.calls = []
        self.fail = fail

    def has_command(self, name):
        return name in self.commands

    def run(self, cmd):
        self.calls.append(list(cmd))
        if self.fail:
            return 100, "E: Unable to locate package"
        if "install" in cmd or "-Sy" in cmd:
            package = cmd[-1]
            self.commands.add("sqlite3" if package == "sqlite" else package)
        return 0, ""


class FakeServiceManager:
    """systemctl 호출을 기록하는 서비스 매니저"""

    def __init__(self, active=True):
        self.calls = []
        self.active = active

    def daemon_reload(self):
        self.calls.append(("daemon-reload",))

    def enable(self, name):
        self.calls.append(("enable", name))

    def start(self, name):
        self.calls.append(("start", name))

    def is_active(self, name):
        return self.active


class FakeDownloader:
    """임시 파일에 가짜 바이너리를 기록하는 다운로더"""

    def __init__(self, directory, error=None):
        self.directory = directory
        self.urls = []
        self.error = error

    def fetch(self, url, destination_dir=None):
        self.urls.append(url)
        if self.error:
            raise self.error
        path = self.directory / "hyservinst.download"
        path.write_bytes(b"\x7fELF fake hysteria")
        return str(path)


@pytest.fixture
def fake_installer():
    return FakeInstaller(commands={"apt-get", "curl", "sqlite3", "openssl"})


@pytest.fixture
def fake_manager():
    return FakeServiceManager()
