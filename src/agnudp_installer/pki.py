"""
인증서 발급 모듈
자체 서명 CA 생성 및 도메인용 서버 인증서 발급

생성 파일:
- hysteria.ca.key / hysteria.ca.crt
- hysteria.server.key / hysteria.server.csr / hysteria.server.crt

모든 파일은 출력 디렉토리 내부의 임시 디렉토리에서 생성된 뒤
다섯 개가 모두 준비되었을 때만 os.replace로 게시됩니다.
"""

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from .errors import PKIGenerationError
from .interfaces import CertificateAuthority
from .logger import get_logger


CA_SUBJECT = {
    "C": "CN",
    "ST": "GD",
    "L": "SZ",
    "O": "Hysteria, Inc.",
    "CN": "Hysteria Root CA",
}

NAME_OIDS = {
    "C": NameOID.COUNTRY_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "L": NameOID.LOCALITY_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "CN": NameOID.COMMON_NAME,
}

CA_KEY = "hysteria.ca.key"
CA_CERT = "hysteria.ca.crt"
SERVER_KEY = "hysteria.server.key"
SERVER_CSR = "hysteria.server.csr"
SERVER_CERT = "hysteria.server.crt"

# 게시 순서: 서버 인증서가 마지막
ARTIFACTS = (CA_KEY, CA_CERT, SERVER_KEY, SERVER_CSR, SERVER_CERT)
PRIVATE_ARTIFACTS = (CA_KEY, SERVER_KEY)


def build_name(subject: Dict[str, str]) -> x509.Name:
    """{'C': .., 'CN': ..} 형태를 x509.Name으로 변환"""
    return x509.Name([
        x509.NameAttribute(NAME_OIDS[key], value) for key, value in subject.items()
    ])


def server_subject(domain: str) -> Dict[str, str]:
    subject = dict(CA_SUBJECT)
    subject["CN"] = domain
    return subject


@dataclass
class PKIPaths:
    """게시된 PKI 파일 경로"""
    ca_key: str
    ca_cert: str
    server_key: str
    server_csr: str
    server_cert: str

    @classmethod
    def under(cls, output_dir: str) -> "PKIPaths":
        return cls(
            ca_key=os.path.join(output_dir, CA_KEY),
            ca_cert=os.path.join(output_dir, CA_CERT),
            server_key=os.path.join(output_dir, SERVER_KEY),
            server_csr=os.path.join(output_dir, SERVER_CSR),
            server_cert=os.path.join(output_dir, SERVER_CERT),
        )

    def all(self) -> List[str]:
        return [self.ca_key, self.ca_cert, self.server_key, self.server_csr, self.server_cert]


class CryptographyAuthority:
    """cryptography 라이브러리 기반 CA 구현"""

    def generate_key(self, key_size: int) -> rsa.RSAPrivateKey:
        return rsa.generate_private_key(public_exponent=65537, key_size=key_size)

    def self_sign(self, key, subject: dict, not_before: datetime, not_after: datetime) -> x509.Certificate:
        name = build_name(subject)
        public_key = key.public_key()
        return (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(public_key)
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
            .sign(key, hashes.SHA256())
        )

    def create_csr(self, key, subject: dict) -> x509.CertificateSigningRequest:
        return (
            x509.CertificateSigningRequestBuilder()
            .subject_name(build_name(subject))
            .sign(key, hashes.SHA256())
        )

    def sign_csr(self, csr, ca_cert, ca_key, dns_names: List[str],
                 not_before: datetime, not_after: datetime) -> x509.Certificate:
        if not csr.is_signature_valid:
            raise ValueError("CSR signature is invalid")
        return (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(ca_cert.subject)
            .public_key(csr.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName(name) for name in dns_names]),
                critical=False,
            )
            .sign(ca_key, hashes.SHA256())
        )

    def key_pem(self, key) -> bytes:
        return key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def cert_pem(self, cert) -> bytes:
        return cert.public_bytes(serialization.Encoding.PEM)

    def csr_pem(self, csr) -> bytes:
        return csr.public_bytes(serialization.Encoding.PEM)


class CertificateIssuer:
    """CA 및 서버 인증서 발급"""

    def __init__(self, authority: Optional[CertificateAuthority] = None,
                 key_size: int = 2048, validity_days: int = 3650):
        self.authority = authority or CryptographyAuthority()
        self.key_size = key_size
        self.validity_days = validity_days
        self.logger = get_logger()

    def _write(self, directory: str, filename: str, data: bytes):
        path = os.path.join(directory, filename)
        mode = 0o600 if filename in PRIVATE_ARTIFACTS else 0o644
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

    def _generate(self, domain: str, directory: str):
        """임시 디렉토리에 다섯 개 파일 생성"""
        not_before = datetime.now(timezone.utc) - timedelta(minutes=1)
        not_after = not_before + timedelta(days=self.validity_days)
        authority = self.authority

        self.logger.debug(f"Generating CA key ({self.key_size} bit)")
        ca_key = authority.generate_key(self.key_size)
        ca_cert = authority.self_sign(ca_key, CA_SUBJECT, not_before, not_after)
        self._write(directory, CA_KEY, authority.key_pem(ca_key))
        self._write(directory, CA_CERT, authority.cert_pem(ca_cert))

        self.logger.debug(f"Generating server key and CSR for {domain}")
        server_key = authority.generate_key(self.key_size)
        csr = authority.create_csr(server_key, server_subject(domain))
        self._write(directory, SERVER_KEY, authority.key_pem(server_key))
        self._write(directory, SERVER_CSR, authority.csr_pem(csr))

        self.logger.debug("Signing server certificate with CA key")
        server_cert = authority.sign_csr(csr, ca_cert, ca_key, [domain], not_before, not_after)
        self._write(directory, SERVER_CERT, authority.cert_pem(server_cert))

    def ensure_pki(self, domain: str, output_dir: str) -> PKIPaths:
        """CA/서버 인증서 생성 후 원자적으로 게시"""
        if not domain:
            raise PKIGenerationError("Domain name is required to issue a server certificate")

        self.logger.info("Generating SSL certificates...")
        try:
            os.makedirs(output_dir, exist_ok=True)
            with tempfile.TemporaryDirectory(prefix=".pki-", dir=output_dir) as staging:
                self._generate(domain, staging)
                for filename in ARTIFACTS:
                    os.replace(os.path.join(staging, filename), os.path.join(output_dir, filename))
        except PKIGenerationError:
            raise
        except Exception as e:
            self.logger.debug("Certificate generation failed", exc_info=True)
            raise PKIGenerationError(f"Certificate generation failed: {e}") from e

        paths = PKIPaths.under(output_dir)
        self.logger.info(f"Certificates written to {output_dir}")
        return paths


def _load(path: str, loader):
    with open(path, "rb") as f:
        return loader(f.read())


def verify_pki(domain: str, output_dir: str) -> PKIPaths:
    """게시된 PKI 파일이 서로 일치하고 도메인과 맞는지 검증"""
    paths = PKIPaths.under(output_dir)
    missing = [path for path in paths.all() if not os.path.exists(path)]
    if missing:
        raise PKIGenerationError(f"Missing PKI files: {', '.join(missing)}")

    try:
        ca_cert = _load(paths.ca_cert, x509.load_pem_x509_certificate)
        server_cert = _load(paths.server_cert, x509.load_pem_x509_certificate)
        server_key = _load(paths.server_key, lambda data: serialization.load_pem_private_key(data, password=None))
        ca_key = _load(paths.ca_key, lambda data: serialization.load_pem_private_key(data, password=None))
    except (ValueError, TypeError) as e:
        raise PKIGenerationError(f"Unreadable PKI material in {output_dir}: {e}") from e

    if ca_key.public_key().public_numbers() != ca_cert.public_key().public_numbers():
        raise PKIGenerationError("CA key does not match CA certificate")

    try:
        server_cert.verify_directly_issued_by(ca_cert)
    except (ValueError, TypeError, InvalidSignature) as e:
        raise PKIGenerationError(f"Server certificate is not issued by the CA: {e}") from e

    if server_key.public_key().public_numbers() != server_cert.public_key().public_numbers():
        raise PKIGenerationError("Server key does not match server certificate")

    try:
        san = server_cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound as e:
        raise PKIGenerationError("Server certificate has no subjectAltName") from e
    if domain not in san.value.get_values_for_type(x509.DNSName):
        raise PKIGenerationError(f"Server certificate subjectAltName does not list {domain}")

    common_names = server_cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not common_names or common_names[0].value != domain:
        raise PKIGenerationError(f"Server certificate common name does not match {domain}")

    return paths
