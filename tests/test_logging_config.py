import importlib
import logging
import sys
from datetime import datetime


def test_setup_module_logger_respects_env(tmp_path, monkeypatch):
    monkeypatch.setenv("OVERLAY_LOG_DIR", str(tmp_path))

    import ocr_overlay.logging_config as logging_config
    importlib.reload(logging_config)

    logging_config.setup_module_logger("test_logger", "test.log")

    date_str = datetime.now().strftime("%Y%m%d")
    expected = tmp_path / f"{date_str}_test.log"
    assert expected.exists()


def test_setup_module_logger_creates_subdir(tmp_path, monkeypatch):
    monkeypatch.setenv("OVERLAY_LOG_DIR", str(tmp_path))

    import ocr_overlay.logging_config as logging_config
    importlib.reload(logging_config)

    logging_config.setup_module_logger("test_logger", "translation/dispatcher.log")

    date_str = datetime.now().strftime("%Y%m%d")
    expected = tmp_path / "translation" / date_str / "dispatcher.log"
    assert expected.exists()


def test_get_log_level_from_env(monkeypatch):
    monkeypatch.setenv("TRANSLATOR_LOG_LEVEL", "DEBUG")

    import ocr_overlay.logging_config as logging_config

    assert logging_config.get_log_level("TRANSLATOR_LOG_LEVEL") == 10
    assert logging_config.get_log_level("UNSET_LOG_LEVEL_VAR", logging.WARNING) == logging.WARNING


def test_translator_module_logger_file(tmp_path, monkeypatch):
    monkeypatch.setenv("OVERLAY_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("TRANSLATOR_LOG_LEVEL", "INFO")

    import ocr_overlay.logging_config as logging_config
    importlib.reload(logging_config)

    import ocr_overlay.modules.translator as translator
    importlib.reload(translator)

    date_str = datetime.now().strftime("%Y%m%d")
    expected = tmp_path / "translator" / date_str / "translator.log"
    assert expected.exists()


def test_setup_module_logger_can_mirror_to_stdout(tmp_path, monkeypatch):
    monkeypatch.setenv("OVERLAY_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("DISPATCHER_LOG_TO_STDOUT", "1")

    import ocr_overlay.logging_config as logging_config
    importlib.reload(logging_config)

    logger = logging_config.setup_module_logger(
        "ocr_overlay.test_mirror",
        "translation/mirror.log",
        console_env="DISPATCHER_LOG_TO_STDOUT",
    )

    has_stdout_handler = any(
        isinstance(handler, logging.StreamHandler)
        and not isinstance(handler, logging.FileHandler)
        and getattr(handler, "stream", None) is sys.stdout
        for handler in logger.handlers
    )
    assert has_stdout_handler is True


def test_format_log_text_modes(monkeypatch):
    from ocr_overlay.logging_config import format_log_text

    monkeypatch.delenv("TRANSLATOR_LOG_MODE", raising=False)
    assert format_log_text("設定を保存") is None
    assert format_log_text("a\nb", mode="full") == "a\\nb"
    assert format_log_text("abc", mode="hash").startswith("sha256:")
    assert format_log_text("x" * 30, mode="snippet", limit=5) == "xxxxx...xxxxx"

    monkeypatch.setenv("TRANSLATOR_LOG_MODE", "full")
    assert format_log_text("設定") == "設定"
