"""Настройка логирования сервиса.

Лог пишется в `<log_dir>/ad_reconciler.log` и в stdout. Файл ротируется
каждую полночь по UTC, ротированные копии старше `retention_days` удаляются
при каждой настройке.

Повторный вызов `setup_logging` заменяет ранее установленные handlers,
поэтому его можно безопасно вызывать при перезапуске приложения.
"""
from __future__ import annotations

import glob
import logging
import os
import time
from logging.handlers import TimedRotatingFileHandler

_LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LOG_FILE = "ad_reconciler.log"
_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ldap3 на DEBUG печатает каждый PDU
_NOISY_LOGGERS = ("ldap3", "uvicorn.access")

_installed: list[logging.Handler] = []


def _parse_level(level: str) -> str:
    name = (level or "").strip().upper()
    return name if name in _LEVELS else "INFO"


def _uninstall(root: logging.Logger) -> None:
    while _installed:
        h = _installed.pop()
        if h in root.handlers:
            root.removeHandler(h)
        h.close()


def setup_logging(
    level: str = "INFO",
    retention_days: int = 30,
    log_dir: str = "data/logs",
) -> str:
    """Настраивает корневой логгер, возвращает путь к файлу лога."""
    level_name = _parse_level(level)
    numeric = getattr(logging, level_name)
    retention_days = max(1, min(365, int(retention_days or 30)))

    log_dir = os.path.abspath(log_dir)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, _LOG_FILE)

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
    file_handler = TimedRotatingFileHandler(
        log_file,
        when="midnight",
        backupCount=retention_days,
        encoding="utf-8",
        utc=True,
    )
    file_handler.suffix = "%Y-%m-%d"

    root = logging.getLogger()
    _uninstall(root)
    for h in (file_handler, logging.StreamHandler()):
        h.setLevel(numeric)
        h.setFormatter(formatter)
        root.addHandler(h)
        _installed.append(h)
    root.setLevel(numeric)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))

    removed = _cleanup_old_logs(log_dir, retention_days)
    logging.getLogger("ad_reconciler").info(
        "Логирование настроено: уровень=%s, хранение=%d дней, каталог=%s, удалено старых файлов=%d",
        level_name, retention_days, log_dir, removed,
    )
    return log_file


def _cleanup_old_logs(log_dir: str, retention_days: int) -> int:
    """Удаляет ротированные файлы старше retention_days, возвращает их число."""
    cutoff = time.time() - retention_days * 86400
    removed = 0
    for path in glob.glob(os.path.join(log_dir, _LOG_FILE + ".*")):
        try:
            if os.path.getmtime(path) < cutoff:
                os.remove(path)
                removed += 1
        except OSError as e:
            logging.getLogger(__name__).warning("Не удалось удалить старый лог %s: %s", path, e)
    return removed
