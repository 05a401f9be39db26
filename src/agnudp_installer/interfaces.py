"""
외부 도구 추상화 인터페이스
패키지 매니저, 인증서 발급, 사용자 DB, 서비스 매니저를 테스트에서 대체할 수 있도록 분리
"""

from datetime import datetime
from typing import Any, List, Optional, Protocol, Tuple


class PackageInstaller(Protocol):
    """시스템 명령 확인 및 패키지 설치 명령 실행"""

    def has_command(self, name: str) -> bool:
        ...

    def run(self, cmd: List[str]) -> Tuple[int, str]:
        ...


class KeyValueAccountStore(Protocol):
    """username -> password 형태의 영구 계정 저장소"""

    def ensure_store(self) -> None:
        ...

    def add_account(self, username: str, password: str) -> None:
        ...

    def get_password(self, username: str) -> Optional[str]:
        ...

    def count(self) -> int:
        ...


class CertificateAuthority(Protocol):
    """키 생성, CSR 작성, 서명 및 PEM 직렬화"""

    def generate_key(self, key_size: int) -> Any:
        ...

    def self_sign(self, key: Any, subject: dict, not_before: datetime, not_after: datetime) -> Any:
        ...

    def create_csr(self, key: Any, subject: dict) -> Any:
        ...

    def sign_csr(self, csr: Any, ca_cert: Any, ca_key: Any, dns_names: List[str],
                 not_before: datetime, not_after: datetime) -> Any:
        ...

    def key_pem(self, key: Any) -> bytes:
        ...

    def cert_pem(self, cert: Any) -> bytes:
        ...

    def csr_pem(self, csr: Any) -> bytes:
        ...


class ServiceManager(Protocol):
    """호스트 서비스 매니저 (systemd)"""

    def daemon_reload(self) -> None:
        ...

    def enable(self, name: str) -> None:
        ...

    def start(self, name: str) -> None:
        ...

    def is_active(self, name: str) -> bool:
        ...
