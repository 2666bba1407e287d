from helpers import make_settings

from config.logging_config import configure_logging, log, setup_logging


def test_configured_level_and_directory_apply(tmp_path):
    try:
        configure_logging(make_settings(log_level="ERROR", log_dir=tmp_path))
        log.info("routine listing")
        log.error("observer rejected listing")
    finally:
        setup_logging()

    content = (tmp_path / "propwatch.log").read_text()
    assert "observer rejected listing" in content
    assert "routine listing" not in content
    assert "observer rejected listing" in (tmp_path / "errors.log").read_text()


def test_default_setup_writes_no_files(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    setup_logging()
    log.error("stderr only")

    assert list(tmp_path.iterdir()) == []
