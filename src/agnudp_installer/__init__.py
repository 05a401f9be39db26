"""
AGN-UDP Installer
Hysteria 기반 AGN-UDP 서비스를 설치하고 시스템 서비스로 등록하는 설치 도구

Features:
- 패키지 매니저 자동 감지 및 의존성 설치
- 사용자 DB(udpusers.db) 생성 및 기본 계정 등록
- 자체 서명 CA 및 서버 인증서 발급
- hysteria 바이너리 다운로드 및 systemd 서비스 등록
- idempotent 재실행 지원
"""

__version__ = "1.0.0"
__author__ = "DevOps Team"
