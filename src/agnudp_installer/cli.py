"""
CLI 메인 인터페이스
Click 및 Rich 기반 AGN-UDP 설치 명령
"""

import os
import sys
import yaml
import click
from typing import Optional
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from . import __version__
from .config import Config, SUPPORTED_PROTOCOLS
from .credentials import CredentialBootstrapper, SqliteAccountStore
from .dependencies import DependencyResolver
from .download import BinaryDownloader, detect_arch, release_url
from .errors import ProvisionError, ServiceRegistrationError
from .interfaces import CertificateAuthority, KeyValueAccountStore, PackageInstaller, ServiceManager
from .logger import init_logger, get_logger, error
from .pki import CertificateIssuer, PKIPaths, verify_pki
from .service import ServiceDescriptor, ServiceProvisioner, render_server_config

console = Console()


class InstallOrchestrator:
    """설치 오케스트레이터 (단계 순차 실행, 첫 오류에서 중단)"""

    def __init__(self, config: Config,
                 installer: Optional[PackageInstaller] = None,
                 store: Optional[KeyValueAccountStore] = None,
                 authority: Optional[CertificateAuthority] = None,
                 downloader: Optional[BinaryDownloader] = None,
                 manager: Optional[ServiceManager] = None):
        self.config = config
        self.logger = get_logger()
        self.resolver = DependencyResolver(installer)
        self.bootstrapper = CredentialBootstrapper(store or SqliteAccountStore(config.paths.user_db))
        self.issuer = CertificateIssuer(authority, config.pki.key_size, config.pki.validity_days)
        self.downloader = downloader or BinaryDownloader(
            retries=config.download.retries,
            retry_delay=config.download.retry_delay,
            max_time=config.download.max_time,
        )
        self.provisioner = ServiceProvisioner(manager, self.build_descriptor(config))
        self.execution_log = []
        self.stage = None

    @staticmethod
    def build_descriptor(config: Config) -> ServiceDescriptor:
        return ServiceDescriptor(
            executable_path=config.paths.executable,
            config_path=config.paths.config_file,
            working_directory=config.paths.config_dir,
            restart_policy=config.service.restart,
            service_name=config.service.name,
            description=config.service.description,
            user=config.service.user,
            group=config.service.group,
            units_dir=config.paths.systemd_dir,
        )

    def log_step(self, step: str, status: str, message: str = ""):
        """실행 단계 로깅"""
        self.execution_log.append({
            "step": step,
            "status": status,
            "message": message
        })

    def show_summary(self):
        """실행 결과 요약 표시"""
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("단계", style="cyan", width=20)
        table.add_column("상태", width=6)
        table.add_column("메시지")

        for log in self.execution_log:
            status_icon = "✓" if log["status"] == "success" else "✗"
            status_color = "green" if log["status"] == "success" else "red"
            table.add_row(
                log["step"],
                f"[{status_color}]{status_icon}[/{status_color}]",
                log["message"]
            )

        console.print(table)

        log_files = self.logger.get_log_files()
        console.print(f"\n[bold]로그 파일:[/bold]")
        console.print(f"  Main: {log_files['main_log']}")
        console.print(f"  Error: {log_files['error_log']}")

    def _enter(self, stage: str):
        self.stage = stage
        self.logger.debug(f"Entering stage: {stage}")

    def check_dependencies(self):
        self._enter("dependencies")
        installed = self.resolver.ensure(list(self.config.dependencies.tools))
        message = f"설치: {', '.join(installed)}" if installed else "모두 설치됨"
        self.log_step("dependencies", "success", message)
        self.logger.note(f"dependencies ready ({message})")

    def setup_db(self):
        self._enter("credential_store")
        accounts = self.config.accounts
        self.bootstrapper.ensure_store()
        created = self.bootstrapper.ensure_default_account(
            accounts.default_username, accounts.default_password
        )
        message = "기본 계정 생성" if created else "기본 계정 이미 존재"
        self.log_step("credential_store", "success", message)
        self.logger.note(f"user database ready: {self.config.paths.user_db}")

        if created and self.config.uses_default_password():
            console.print(
                f"[yellow]⚠ 기본 계정 '{accounts.default_username}'이 문서화된 기본 비밀번호를 사용합니다. "
                f"설치 후 반드시 변경하세요.[/yellow]"
            )
            self.logger.warning("Default account uses the documented default password")

    def setup_ssl(self):
        self._enter("pki")
        domain = self.config.server.domain
        pki_dir = self.config.paths.pki_dir
        self.issuer.ensure_pki(domain, pki_dir)
        verify_pki(domain, pki_dir)
        self.log_step("pki", "success", domain)
        self.logger.note(f"certificates issued for {domain}")

    def fetch_binary(self) -> str:
        self._enter("binary_fetch")
        release = self.config.release
        arch = release.arch or detect_arch()
        url = release_url(release.repo_url, release.version, arch)
        path = self.downloader.fetch(url)
        self.log_step("binary_fetch", "success", f"{release.version} ({arch})")
        self.logger.note(f"downloaded hysteria {release.version}")
        return path

    def install_service(self, binary_path: str):
        self._enter("service_install")
        try:
            self.provisioner.install_binary(binary_path)
        finally:
            if os.path.exists(binary_path):
                os.unlink(binary_path)

        server = self.config.server
        pki = PKIPaths.under(self.config.paths.pki_dir)
        settings = render_server_config(
            domain=server.domain,
            port=server.port,
            protocol=server.protocol,
            obfs=server.obfs,
            password=server.password,
            cert_path=pki.server_cert,
            key_path=pki.server_key,
            up_mbps=server.up_mbps,
            down_mbps=server.down_mbps,
        )
        self.provisioner.write_config(settings)
        self.provisioner.register_and_start()
        self.log_step("service_install", "success", self.config.service.name)
        self.logger.note(f"{self.config.service.name} installed")

    def verify_started(self):
        self._enter("started")
        name = self.config.service.name
        if not self.provisioner.is_running():
            raise ServiceRegistrationError(f"Failed to start AGN-UDP service ({name} is not active).")
        self.log_step("started", "success", name)
        self.logger.note("AGN-UDP service started.")

    def run(self) -> bool:
        """메인 실행 로직"""
        console.print(Panel.fit(
            "[bold cyan]AGN-UDP Installer[/bold cyan]\n"
            f"도메인: {self.config.server.domain}  포트: {self.config.server.port}  프로토콜: {self.config.server.protocol}",
            border_style="cyan"
        ))
        self.logger.info("=== Installation started ===")

        try:
            self.check_dependencies()
            self.setup_db()
            self.setup_ssl()
            binary_path = self.fetch_binary()
            self.install_service(binary_path)
            self.verify_started()

        except ProvisionError as e:
            self.log_step(self.stage or e.stage, "failed", e.message)
            self.logger.debug(f"Stage '{self.stage}' failed")
            self.logger.fail(e.message)
            return False

        except KeyboardInterrupt:
            self.log_step(self.stage or "provision", "failed", "interrupted")
            self.logger.fail("interrupted by user")
            return False

        except Exception as e:
            self.log_step(self.stage or "provision", "failed", str(e))
            # 트레이스백은 로그 파일에만 기록
            self.logger.fail(f"unexpected error: {e}", exc_info=True)
            return False

        self.logger.info("=== Installation completed successfully ===")
        self.show_summary()
        console.print("\n[bold green]✓ AGN-UDP has been successfully installed and started![/bold green]")
        return True


@click.command()
@click.version_option(version=__version__)
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='설정 파일 경로 (YAML/JSON)')
@click.option('--debug', is_flag=True, help='디버그 모드')
@click.option('--domain', envvar='AGNUDP_DOMAIN', help='서버 도메인 (인증서 CN/SAN)')
@click.option('--protocol', envvar='AGNUDP_PROTOCOL', type=click.Choice(SUPPORTED_PROTOCOLS), help='전송 프로토콜')
@click.option('--port', envvar='AGNUDP_PORT', type=click.IntRange(1, 65535), help='UDP 포트')
@click.option('--obfs', envvar='AGNUDP_OBFS', help='난독화 키')
@click.option('--password', envvar='AGNUDP_PASSWORD', help='서버 인증 비밀번호')
def cli(config_path, debug, domain, protocol, port, obfs, password):
    """AGN-UDP 서버 설치

    의존성 설치, 사용자 DB, 인증서, hysteria 바이너리 및 systemd 서비스를 순서대로 설정합니다.
    """
    try:
        cfg = Config(config_path)
        cfg.apply_overrides(domain=domain, protocol=protocol, port=port, obfs=obfs, password=password)
        cfg.validate()
    except (TypeError, ValueError, yaml.YAMLError) as e:
        error(f"invalid configuration: {e}")
        sys.exit(1)

    try:
        init_logger(cfg.agent.log_dir, cfg.agent.log_level, debug)
    except OSError as e:
        error(f"unable to create log directory {cfg.agent.log_dir}: {e}")
        sys.exit(1)

    logger = get_logger()
    logger.info(f"Starting install (debug={debug}, config={cfg.config_path})")

    orchestrator = InstallOrchestrator(cfg)
    success = orchestrator.run()

    sys.exit(0 if success else 1)


def main():
    """메인 엔트리 포인트"""
    cli()


if __name__ == '__main__':
    main()
