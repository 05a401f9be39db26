"""
로깅 시스템
파일 및 콘솔 로깅, 단계별 note/error 출력
"""

import logging
import os
from datetime import datetime
from typing import Optional
from rich.logging import RichHandler
from rich.console import Console

console = Console()

DEFAULT_LOG_DIR = "/var/log/agnudp-installer"
PROGRAM_NAME = "agnudp-install"


class FileOnlyFilter(logging.Filter):
    """extra={"console": False} 레코드는 콘솔에 출력하지 않음"""

    def filter(self, record: logging.LogRecord) -> bool:
        return getattr(record, "console", True)


class InstallerLogger(logging.LoggerAdapter):
    """설치 로거

    debug/info/warning/error/exception은 LoggerAdapter가 그대로 위임한다.
    note()/fail()은 로그 파일에 기록하고 콘솔에는 색상 한 줄만 출력한다.
    """

    def __init__(self, log_dir: str = DEFAULT_LOG_DIR, log_level: str = "INFO", debug: bool = False):
        self.log_dir = log_dir
        self.log_level = logging.DEBUG if debug else getattr(logging, log_level.upper())

        os.makedirs(log_dir, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_file = os.path.join(log_dir, f"install_{timestamp}.log")
        self.error_file = os.path.join(log_dir, f"error_{timestamp}.log")

        logger = logging.getLogger("agnudp_installer")
        logger.setLevel(self.log_level)

        # 재초기화 시 파일 핸들러 누수 방지
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

        file_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        for path, level in ((self.log_file, self.log_level), (self.error_file, logging.ERROR)):
            file_handler = logging.FileHandler(path, encoding='utf-8')
            file_handler.setLevel(level)
            file_handler.setFormatter(file_formatter)
            logger.addHandler(file_handler)

        rich_handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            show_time=False,
            show_path=debug
        )
        rich_handler.setLevel(self.log_level)
        rich_handler.addFilter(FileOnlyFilter())
        logger.addHandler(rich_handler)

        super().__init__(logger, {})

    def note(self, message: str):
        """단계 성공 메시지 (녹색 한 줄)"""
        self.logger.info(message, extra={"console": False})
        console.print(f"{PROGRAM_NAME}: [green]note: {message}[/green]", highlight=False)

    def fail(self, message: str, exc_info: bool = False):
        """치명적 오류 메시지 (빨간색 한 줄, 상세 내용은 로그 파일에만)"""
        self.logger.error(message, exc_info=exc_info, extra={"console": False})
        error(message)

    def get_log_files(self) -> dict:
        """로그 파일 경로 반환"""
        return {
            "main_log": self.log_file,
            "error_log": self.error_file,
            "log_dir": self.log_dir
        }


def error(message: str):
    """빨간색 error 한 줄 출력 (로거 초기화 이전에도 사용)"""
    console.print(f"{PROGRAM_NAME}: [red]error: {message}[/red]", highlight=False)


# 글로벌 로거 인스턴스
_logger: Optional[InstallerLogger] = None


def get_logger(log_dir: str = DEFAULT_LOG_DIR,
               log_level: str = "INFO",
               debug: bool = False) -> InstallerLogger:
    """로거 인스턴스 가져오기"""
    global _logger
    if _logger is None:
        _logger = InstallerLogger(log_dir, log_level, debug)
    return _logger


def init_logger(log_dir: str, log_level: str, debug: bool) -> InstallerLogger:
    """로거 초기화"""
    global _logger
    _logger = InstallerLogger(log_dir, log_level, debug)
    return _logger
