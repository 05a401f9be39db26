"""
서비스 설치 모듈
바이너리 배치, config.json 생성, systemd 유닛 등록 및 시작
"""

import json
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Dict, List, Optional
from jinja2 import Template
from .errors import InstallError, ServiceRegistrationError
from .interfaces import ServiceManager
from .logger import get_logger


UNIT_TEMPLATE = """[Unit]
Description={{ description }}
After=network.target

[Service]
User={{ user }}
Group={{ group }}
WorkingDirectory={{ working_directory }}
ExecStart={{ executable_path }} server --config {{ config_path }}
Restart={{ restart_policy }}
RestartSec=3

[Install]
WantedBy=multi-user.target
"""


@dataclass
class ServiceDescriptor:
    """서비스 실행 방식 정의"""
    executable_path: str = "/usr/local/bin/hysteria"
    config_path: str = "/etc/hysteria/config.json"
    working_directory: str = "/etc/hysteria"
    restart_policy: str = "on-failure"
    service_name: str = "hysteria-server.service"
    description: str = "AGN-UDP Service"
    user: str = "root"
    group: str = "root"
    units_dir: str = "/etc/systemd/system"

    @property
    def unit_path(self) -> str:
        return os.path.join(self.units_dir, self.service_name)


def render_server_config(domain: str, port: int, protocol: str, obfs: str, password: str,
                         cert_path: str, key_path: str, up_mbps: int = 100, down_mbps: int = 100) -> Dict:
    """hysteria 서버 config.json 내용 생성"""
    return {
        "server": domain,
        "listen": f":{port}",
        "protocol": protocol,
        "cert": cert_path,
        "key": key_path,
        "up": f"{up_mbps} Mbps",
        "up_mbps": up_mbps,
        "down": f"{down_mbps} Mbps",
        "down_mbps": down_mbps,
        "disable_udp": False,
        "insecure": False,
        "obfs": obfs,
        "auth": {
            "mode": "passwords",
            "config": [password],
        },
    }


class SystemdServiceManager:
    """systemctl 래퍼"""

    def __init__(self):
        self.logger = get_logger()

    def _systemctl(self, *args: str) -> subprocess.CompletedProcess:
        cmd: List[str] = ["systemctl", *args]
        self.logger.debug(f"Executing: {' '.join(cmd)}")
        try:
            return subprocess.run(cmd, capture_output=True, text=True, timeout=60)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ServiceRegistrationError(f"'{' '.join(cmd)}' failed: {e}") from e

    def _checked(self, *args: str):
        result = self._systemctl(*args)
        if result.returncode != 0:
            raise ServiceRegistrationError(
                f"systemctl {' '.join(args)} failed: {result.stderr.strip()}"
            )

    def daemon_reload(self):
        self._checked("daemon-reload")

    def enable(self, name: str):
        self._checked("enable", name)

    def start(self, name: str):
        self._checked("start", name)

    def is_active(self, name: str) -> bool:
        result = self._systemctl("is-active", name)
        return result.stdout.strip() == "active"


class ServiceProvisioner:
    """바이너리 및 systemd 서비스 설치"""

    def __init__(self, manager: Optional[ServiceManager] = None,
                 descriptor: Optional[ServiceDescriptor] = None):
        self.manager = manager or SystemdServiceManager()
        self.descriptor = descriptor or ServiceDescriptor()
        self.logger = get_logger()

    def install_binary(self, source: str) -> str:
        """다운로드한 바이너리를 설치 경로에 배치 (install -Dm755)

        같은 디렉터리의 임시 파일에 복사한 뒤 os.replace로 교체하므로
        실행 중인 기존 바이너리가 있어도 실패하지 않는다.
        """
        target = self.descriptor.executable_path
        directory = os.path.dirname(target)
        self.logger.info(f"Installing hysteria binary to {target}...")
        try:
            os.makedirs(directory, exist_ok=True)
            tmp = tempfile.NamedTemporaryFile(prefix=".hysteria.", dir=directory, delete=False)
        except OSError as e:
            raise InstallError(f"Failed to install hysteria binary: {e}") from e

        try:
            with tmp, open(source, "rb") as src:
                shutil.copyfileobj(src, tmp)
            os.chmod(tmp.name, 0o755)
            os.replace(tmp.name, target)
        except OSError as e:
            if os.path.exists(tmp.name):
                os.unlink(tmp.name)
            raise InstallError(f"Failed to install hysteria binary: {e}") from e
        return target

    def write_config(self, settings: Dict) -> bool:
        """config.json이 없을 때만 생성. 생성했으면 True"""
        path = self.descriptor.config_path
        if os.path.exists(path):
            self.logger.info(f"Keeping existing config file: {path}")
            return False

        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(settings, f, indent=2)
                f.write("\n")
        except OSError as e:
            raise InstallError(f"Unable to write config file {path}: {e}") from e

        self.logger.info(f"Config file written: {path}")
        return True

    def render_unit(self) -> str:
        d = self.descriptor
        return Template(UNIT_TEMPLATE).render(
            description=d.description,
            user=d.user,
            group=d.group,
            working_directory=d.working_directory,
            executable_path=d.executable_path,
            config_path=d.config_path,
            restart_policy=d.restart_policy,
        )

    def register_and_start(self):
        """유닛 파일 작성 후 daemon-reload, enable, start"""
        d = self.descriptor
        self.logger.info("Installing systemd service...")
        try:
            os.makedirs(d.units_dir, exist_ok=True)
            with open(d.unit_path, "w", encoding="utf-8") as f:
                f.write(self.render_unit())
        except OSError as e:
            raise ServiceRegistrationError(f"Unable to write unit file {d.unit_path}: {e}") from e

        self.manager.daemon_reload()
        self.manager.enable(d.service_name)
        self.manager.start(d.service_name)
        self.logger.info(f"{d.service_name} started")

    def is_running(self) -> bool:
        return self.manager.is_active(self.descriptor.service_name)
