"""
日志配置模块 - 统一管理 OCR / 翻译核心的日志输出。

日志文件存储在 logs/ 目录下，按日期和模块分类。
"""

import hashlib
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

# 日志目录（可通过环境变量覆盖）
_env_log_dir = os.getenv("OVERLAY_LOG_DIR")
LOG_DIR = (
    Path(_env_log_dir).expanduser()
    if _env_log_dir
    else Path(__file__).parent.parent / "logs"
)

_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _fallback_dir() -> Path:
    return Path(os.getenv("OVERLAY_LOG_DIR_FALLBACK", "/tmp/ocr-overlay-logs"))


def _ensure_log_dir() -> None:
    global LOG_DIR
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        return
    except OSError:
        # Fallback to a writable temp dir if repo logs are not writable
        fallback = _fallback_dir()
        if fallback != LOG_DIR:
            LOG_DIR = fallback
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            return
        raise


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    console: bool = True,
):
    """
    配置全局日志系统。

    Args:
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR)
        log_file: 日志文件名（自动添加日期前缀）
        console: 是否输出到控制台
    """
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    _ensure_log_dir()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        try:
            date_str = datetime.now().strftime("%Y%m%d")
            log_path = LOG_DIR / f"{date_str}_{log_file}"
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError:
            # Ignore file handler if we cannot write logs
            pass

    # 抑制第三方库的冗余日志
    logging.getLogger("onnxruntime").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)

    return root_logger


def setup_module_logger(
    name: str,
    log_file: str,
    level: int = logging.INFO,
    console_env: Optional[str] = None,
) -> logging.Logger:
    """
    为指定模块创建独立日志文件（不影响全局 handler）。

    Args:
        name: logger 名称
        log_file: 日志文件名（自动添加日期前缀；含子目录时按日期分目录）
        level: 日志级别
        console_env: 额外的环境变量开关，开启后同时输出到 stdout
    """
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    _ensure_log_dir()

    date_str = datetime.now().strftime("%Y%m%d")
    log_path = LOG_DIR / log_file
    if log_path.parent != LOG_DIR:
        log_path = log_path.parent / date_str / log_path.name
    else:
        log_path = LOG_DIR / f"{date_str}_{log_file}"
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        fallback = _fallback_dir()
        fallback.mkdir(parents=True, exist_ok=True)
        log_path = fallback / log_path.name
    for handler in logger.handlers:
        if (
            isinstance(handler, logging.FileHandler)
            and Path(handler.baseFilename) == log_path
        ):
            return logger

    try:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError:
        # If we still cannot write, keep logger without file handler
        pass

    def _is_truthy(value: str) -> bool:
        return value.strip().lower() not in {"", "0", "false", "off", "no"}

    enable_console = _is_truthy(os.getenv("MODULE_LOG_TO_STDOUT", "0"))
    if console_env:
        enable_console = enable_console or _is_truthy(os.getenv(console_env, "0"))

    if enable_console:
        has_stdout_handler = any(
            isinstance(handler, logging.StreamHandler)
            and not isinstance(handler, logging.FileHandler)
            and getattr(handler, "stream", None) is sys.stdout
            for handler in logger.handlers
        )
        if not has_stdout_handler:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)
    return logger


def get_log_level(env_var: str, default: int = logging.INFO) -> int:
    """
    从环境变量读取日志级别，默认 INFO。

    Args:
        env_var: 环境变量名
        default: 默认日志级别
    """
    value = os.getenv(env_var, "").upper().strip()
    if not value:
        return default
    return getattr(logging, value, default)


def format_log_text(text: Optional[str], mode: Optional[str] = None, limit: int = 80) -> Optional[str]:
    """
    按 TRANSLATOR_LOG_MODE 决定日志中如何呈现用户文本。

    off -> None（不记录）, full -> 原文, hash -> sha256 摘要, snippet -> 首尾片段
    """
    if text is None:
        return ""
    mode = (mode or os.getenv("TRANSLATOR_LOG_MODE") or "off").strip().lower()
    if mode == "off":
        return None
    raw = str(text).replace("\n", "\\n")
    if mode == "full":
        return raw
    if mode == "hash":
        digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()
        return f"sha256:{digest} len={len(raw)}"
    if mode == "snippet":
        if limit <= 0:
            return ""
        if len(raw) <= limit * 2:
            return raw
        return f"{raw[:limit]}...{raw[-limit:]}"
    return None


_initialized = False


def init_default_logging():
    """初始化默认日志配置。"""
    global _initialized
    if not _initialized:
        setup_logging(
            level=get_log_level("OVERLAY_LOG_LEVEL", logging.INFO),
            log_file="app.log",
            console=True,
        )
        _initialized = True


__all__ = [
    "setup_logging",
    "setup_module_logger",
    "get_log_level",
    "format_log_text",
    "LOG_DIR",
    "init_default_logging",
]
