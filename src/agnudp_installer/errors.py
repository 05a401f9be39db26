"""
설치 단계별 예외 정의
모든 치명적 오류는 ProvisionError를 상속하며, 첫 오류에서 설치가 중단됩니다.
"""


class ProvisionError(Exception):
    """설치 중단을 일으키는 치명적 오류"""

    stage = "provision"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedPlatform(ProvisionError):
    """지원되는 패키지 매니저 또는 아키텍처를 찾을 수 없음"""

    stage = "dependencies"


class DependencyInstallError(ProvisionError):
    """패키지 매니저 설치 명령 실패"""

    stage = "dependencies"


class StoreCreationError(ProvisionError):
    """사용자 DB 생성 실패"""

    stage = "credential_store"


class PKIGenerationError(ProvisionError):
    """키/인증서 생성 또는 서명 실패"""

    stage = "pki"


class DownloadError(ProvisionError):
    """바이너리 다운로드 실패 (재시도 소진)"""

    stage = "binary_fetch"


class InstallError(ProvisionError):
    """바이너리 배치 실패"""

    stage = "service_install"


class ServiceRegistrationError(ProvisionError):
    """서비스 유닛 등록 또는 시작 실패"""

    stage = "service_install"


class DuplicateAccountIgnored(Exception):
    """이미 존재하는 계정 (치명적 오류 아님)"""

    def __init__(self, username: str):
        super().__init__(f"user '{username}' already exists")
        self.username = username
