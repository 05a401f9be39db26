"""
설정 관리 모듈 테스트
"""

import os
import tempfile
import pytest
from agnudp_installer.config import Config


def test_default_config():
    """기본 설정 테스트"""
    config = Config()
    assert config.server.domain == "vpn.khaledagn.me"
    assert config.server.port == 36712
    assert config.server.protocol == "udp"
    assert config.paths.user_db == "/etc/hysteria/udpusers.db"
    assert config.accounts.default_username == "default"
    assert config.pki.validity_days == 3650
    assert config.uses_default_password()


def test_config_load_yaml():
    """YAML 설정 파일 로드 테스트"""
    yaml_content = """
server:
  domain: "udp.example.com"
  port: 5666

accounts:
  default_password: "s3cret"
"""

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        f.write(yaml_content)
        temp_path = f.name

    try:
        config = Config(temp_path)
        assert config.server.domain == "udp.example.com"
        assert config.server.port == 5666
        assert config.server.obfs == "pieudp"
        assert config.accounts.default_password == "s3cret"
        assert not config.uses_default_password()
    finally:
        os.unlink(temp_path)


def test_config_save_json(tmp_path):
    """JSON 저장 후 재로드 테스트"""
    config = Config()
    config.server.domain = "10.0.0.1.nip.io"
    path = str(tmp_path / "config.json")

    config.save(path)

    config2 = Config(path)
    assert config2.server.domain == "10.0.0.1.nip.io"


def test_config_to_dict():
    """딕셔너리 변환 테스트"""
    data = Config().to_dict()

    assert "server" in data
    assert "paths" in data
    assert data["service"]["name"] == "hysteria-server.service"
    assert data["dependencies"]["tools"] == ["curl", "sqlite3", "openssl"]


def test_apply_overrides_ignores_none():
    config = Config()
    config.apply_overrides(domain="a.example.com", port=None, password="pw")

    assert config.server.domain == "a.example.com"
    assert config.server.port == 36712
    assert config.server.password == "pw"


def test_apply_overrides_rejects_unknown_key():
    with pytest.raises(KeyError):
        Config().apply_overrides(colour="blue")


@pytest.mark.parametrize("section,key,value", [
    ("server", "domain", ""),
    ("server", "port", 70000),
    ("server", "protocol", "tcp"),
    ("accounts", "default_username", ""),
    ("pki", "key_size", 1024),
])
def test_validate_rejects_bad_values(section, key, value):
    config = Config()
    setattr(getattr(config, section), key, value)
    with pytest.raises(ValueError):
        config.validate()


@pytest.mark.parametrize("content", ["- server\n- paths\n", "server: udp.example.com\n"])
def test_config_rejects_non_mapping(tmp_path, content):
    """매핑이 아닌 설정 파일은 TypeError"""
    path = tmp_path / "config.yaml"
    path.write_text(content)

    with pytest.raises(TypeError):
        Config(str(path))


def test_validate_rejects_empty_port(tmp_path):
    """값이 비어 있는 port는 검증 실패"""
    path = tmp_path / "config.yaml"
    path.write_text("server:\n  port:\n")

    with pytest.raises(TypeError):
        Config(str(path)).validate()
