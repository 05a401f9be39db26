"""
설정 관리 모듈
YAML/JSON 기반 설정 파일 관리 및 기본값 제공
"""

import os
import yaml
import json
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict


SUPPORTED_PROTOCOLS = ("udp", "wechat-video", "faketcp")


@dataclass
class ServerConfig:
    """AGN-UDP 서버 설정"""
    domain: str = "vpn.khaledagn.me"
    protocol: str = "udp"
    port: int = 36712
    obfs: str = "pieudp"
    password: str = "pieudp"
    up_mbps: int = 100
    down_mbps: int = 100


@dataclass
class PathsConfig:
    """설치 경로 설정"""
    config_dir: str = "/etc/hysteria"
    user_db: str = "/etc/hysteria/udpusers.db"
    config_file: str = "/etc/hysteria/config.json"
    pki_dir: str = "/etc/hysteria"
    executable: str = "/usr/local/bin/hysteria"
    systemd_dir: str = "/etc/systemd/system"


@dataclass
class AccountsConfig:
    """기본 계정 설정 (기본 비밀번호는 반드시 변경할 것)"""
    default_username: str = "default"
    default_password: str = "password"


@dataclass
class PKIConfig:
    """인증서 설정"""
    key_size: int = 2048
    validity_days: int = 3650


@dataclass
class ReleaseConfig:
    """hysteria 릴리즈 설정"""
    repo_url: str = "https://github.com/apernet/hysteria"
    version: str = "v1.3.5"
    arch: str = ""  # 비워두면 자동 감지


@dataclass
class DownloadConfig:
    """다운로드 재시도 설정"""
    retries: int = 5
    retry_delay: int = 10
    max_time: int = 60


@dataclass
class ServiceConfig:
    """systemd 서비스 설정"""
    name: str = "hysteria-server.service"
    description: str = "AGN-UDP Service"
    user: str = "root"
    group: str = "root"
    restart: str = "on-failure"


@dataclass
class DependenciesConfig:
    """필수 시스템 도구"""
    tools: list = field(default_factory=lambda: ["curl", "sqlite3", "openssl"])


@dataclass
class AgentConfig:
    """설치 도구 자체 설정"""
    log_dir: str = "/var/log/agnudp-installer"
    log_level: str = "INFO"


class Config:
    """전체 설정 관리 클래스"""

    DEFAULT_CONFIG_PATHS = [
        "/etc/agnudp-installer/config.yaml",
        "~/.agnudp-installer/config.yaml",
        "./config.yaml",
    ]

    SECTIONS = ("server", "paths", "accounts", "pki", "release",
                "download", "service", "dependencies", "agent")

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.server = ServerConfig()
        self.paths = PathsConfig()
        self.accounts = AccountsConfig()
        self.pki = PKIConfig()
        self.release = ReleaseConfig()
        self.download = DownloadConfig()
        self.service = ServiceConfig()
        self.dependencies = DependenciesConfig()
        self.agent = AgentConfig()

        if config_path:
            self.load(config_path)
        else:
            self._load_from_default_paths()

    def _load_from_default_paths(self):
        """기본 경로에서 설정 파일 로드"""
        for path in self.DEFAULT_CONFIG_PATHS:
            expanded_path = os.path.expanduser(path)
            if os.path.exists(expanded_path):
                self.load(expanded_path)
                return

    def load(self, path: str):
        """설정 파일 로드"""
        path = os.path.expanduser(path)
        if not os.path.exists(path):
            return

        with open(path, 'r', encoding='utf-8') as f:
            if path.endswith('.json'):
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}

        self._update_from_dict(data)
        self.config_path = path

    def _update_from_dict(self, data: Dict[str, Any]):
        """딕셔너리에서 설정 업데이트"""
        if not isinstance(data, dict):
            raise TypeError(f"configuration must be a mapping, got {type(data).__name__}")
        for section in self.SECTIONS:
            if section not in data or not data[section]:
                continue
            target = getattr(self, section)
            if not isinstance(data[section], dict):
                raise TypeError(f"section '{section}' must be a mapping")
            for key, value in data[section].items():
                if hasattr(target, key):
                    setattr(target, key, value)

    def apply_overrides(self, **values):
        """CLI 옵션/환경변수 값으로 서버 설정 덮어쓰기 (None은 무시)"""
        for key, value in values.items():
            if value is None:
                continue
            if not hasattr(self.server, key):
                raise KeyError(f"Unknown server option: {key}")
            setattr(self.server, key, value)

    def validate(self):
        """설정 값 검증"""
        if not self.server.domain:
            raise ValueError("server.domain must not be empty")
        if not 1 <= int(self.server.port) <= 65535:
            raise ValueError(f"server.port out of range: {self.server.port}")
        if self.server.protocol not in SUPPORTED_PROTOCOLS:
            raise ValueError(
                f"server.protocol must be one of {', '.join(SUPPORTED_PROTOCOLS)}: {self.server.protocol}"
            )
        if not self.accounts.default_username:
            raise ValueError("accounts.default_username must not be empty")
        if int(self.pki.key_size) < 2048:
            raise ValueError("pki.key_size must be at least 2048")

    def uses_default_password(self) -> bool:
        """기본 계정 비밀번호가 문서화된 기본값인지 확인"""
        return self.accounts.default_password == AccountsConfig.default_password

    def save(self, path: Optional[str] = None):
        """설정 파일 저장"""
        save_path = path or self.config_path or self.DEFAULT_CONFIG_PATHS[0]
        save_path = os.path.expanduser(save_path)

        os.makedirs(os.path.dirname(save_path) or ".", exist_ok=True)

        data = self.to_dict()

        with open(save_path, 'w', encoding='utf-8') as f:
            if save_path.endswith('.json'):
                json.dump(data, f, indent=2)
            else:
                yaml.dump(data, f, default_flow_style=False, allow_unicode=True)

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        return {section: asdict(getattr(self, section)) for section in self.SECTIONS}
