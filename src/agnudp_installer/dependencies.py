"""
시스템 의존성 설치 모듈
apt-get, dnf, yum, zypper, pacman 지원
"""

import shutil
import subprocess
from typing import Dict, List, Optional, Tuple
from rich.console import Console
from .errors import DependencyInstallError, UnsupportedPlatform
from .interfaces import PackageInstaller
from .logger import get_logger

console = Console()

# 우선순위 순서
PACKAGE_MANAGERS = ("apt-get", "dnf", "yum", "zypper", "pacman")

# 배포판마다 패키지 이름이 다른 도구
PACKAGE_NAMES: Dict[str, Dict[str, str]] = {
    "sqlite3": {"dnf": "sqlite", "yum": "sqlite", "pacman": "sqlite"},
}


class SystemPackageInstaller:
    """실제 시스템에서 명령을 확인하고 실행"""

    def has_command(self, name: str) -> bool:
        return shutil.which(name) is not None

    def run(self, cmd: List[str]) -> Tuple[int, str]:
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True
            )
        except OSError as e:
            return 127, str(e)
        return result.returncode, result.stderr or result.stdout


def install_commands(manager: str, package: str) -> List[List[str]]:
    """패키지 매니저별 설치 명령 구성"""
    if manager == "apt-get":
        return [["apt-get", "update"], ["apt-get", "install", "-y", package]]
    if manager in ("dnf", "yum", "zypper"):
        return [[manager, "install", "-y", package]]
    if manager == "pacman":
        return [["pacman", "-Sy", "--noconfirm", package]]
    raise UnsupportedPlatform(f"Unknown package manager: {manager}")


class DependencyResolver:
    """필수 도구 확인 및 설치 (idempotent)"""

    def __init__(self, installer: Optional[PackageInstaller] = None):
        self.installer = installer or SystemPackageInstaller()
        self.logger = get_logger()

    def detect_package_manager(self) -> Optional[str]:
        """사용 가능한 첫 번째 패키지 매니저 감지"""
        for manager in PACKAGE_MANAGERS:
            if self.installer.has_command(manager):
                self.logger.debug(f"Detected package manager: {manager}")
                return manager
        return None

    def install(self, tool: str) -> str:
        """단일 도구 설치, 사용한 패키지 매니저 반환"""
        manager = self.detect_package_manager()
        if manager is None:
            raise UnsupportedPlatform(
                f"No supported package manager found. Please install {tool} manually."
            )

        package = PACKAGE_NAMES.get(tool, {}).get(manager, tool)
        console.print(f"[cyan]{manager}로 {package} 설치 중...[/cyan]")
        self.logger.info(f"Installing {package} using {manager}...")

        for cmd in install_commands(manager, package):
            self.logger.debug(f"Executing: {' '.join(cmd)}")
            returncode, output = self.installer.run(cmd)
            if returncode != 0:
                self.logger.debug(f"'{' '.join(cmd)}' failed: {output}")
                raise DependencyInstallError(f"Failed to install {package} using {manager}: {output.strip()}")

        self.logger.info(f"{package} installed")
        return manager

    def ensure(self, tools: List[str]) -> List[str]:
        """누락된 도구만 설치하고 설치한 목록 반환"""
        installed = []
        for tool in tools:
            if self.installer.has_command(tool):
                self.logger.debug(f"{tool}: already present")
                continue
            self.logger.warning(f"{tool}: not installed")
            self.install(tool)
            installed.append(tool)

        if installed:
            self.logger.info(f"Installed dependencies: {', '.join(installed)}")
        else:
            self.logger.info("All dependencies are installed")
        return installed
