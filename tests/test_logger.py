"""
로깅 시스템 테스트
"""

from agnudp_installer.logger import init_logger


def read(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


def test_note_prints_single_line_and_logs_to_file(tmp_path, capsys):
    logger = init_logger(str(tmp_path), "INFO", False)

    logger.note("certificates issued for example.com")

    out = capsys.readouterr().out
    assert out.strip() == "agnudp-install: note: certificates issued for example.com"
    assert "certificates issued for example.com" in read(logger.get_log_files()["main_log"])


def test_fail_keeps_details_out_of_console(tmp_path, capsys):
    logger = init_logger(str(tmp_path), "INFO", False)

    try:
        raise RuntimeError("disk full")
    except RuntimeError:
        logger.fail("unexpected error: disk full", exc_info=True)

    out = capsys.readouterr().out
    assert out.strip() == "agnudp-install: error: unexpected error: disk full"
    error_log = read(logger.get_log_files()["error_log"])
    assert "unexpected error: disk full" in error_log
    assert "Traceback" in error_log


def test_plain_records_reach_console(tmp_path, capsys):
    logger = init_logger(str(tmp_path), "INFO", False)

    logger.info("Setting up database")
    logger.debug("hidden at INFO level")

    out = capsys.readouterr().out
    assert "Setting up database" in out
    assert "hidden at INFO level" not in out


def test_reinit_replaces_handlers(tmp_path):
    first = init_logger(str(tmp_path / "a"), "INFO", False)
    second = init_logger(str(tmp_path / "b"), "DEBUG", False)

    assert first.logger is second.logger
    assert len(second.logger.handlers) == 3
    assert second.get_log_files()["log_dir"] == str(tmp_path / "b")
