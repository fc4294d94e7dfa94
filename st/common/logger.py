import logging
import os
from pathlib import Path
from logging.handlers import RotatingFileHandler
from st.common.setup import PATHS
from datetime import datetime

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(filename)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Env overrides, mainly for running from a terminal: STUDYTRACK_LOG_LEVEL=INFO, STUDYTRACK_LOG_CONSOLE=1
LEVEL_ENV = "STUDYTRACK_LOG_LEVEL"
CONSOLE_ENV = "STUDYTRACK_LOG_CONSOLE"


# Reads a level name like "info" from the environment, falling back to the given default when unset or unknown.
def level_from_env(default):
    raw = (os.getenv(LEVEL_ENV) or "").strip().upper()
    level = logging.getLevelName(raw) if raw else default
    return level if isinstance(level, int) else default

def console_from_env(default):
    raw = (os.getenv(CONSOLE_ENV) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")

# Adds the handler built by make_handler unless one with this name is already attached. Returns True if added.
def _attach(logger, handler_name, make_handler, level, fmt):
    if any(h.get_name() == handler_name for h in logger.handlers):
        return False
    handler = make_handler()
    handler.setLevel(level)
    handler.setFormatter(fmt)
    handler.set_name(handler_name)
    logger.addHandler(handler)
    return True

# Deletes all but the newest `keep` per-run debug logs.
def prune_runs(run_dir: Path, name, keep):
    runs = sorted(run_dir.glob(f"{name}_*.log"),key=lambda p: p.stat().st_mtime,reverse=True)
    for run in runs[keep:]:
        try: run.unlink()
        except OSError: pass

def get_logger(
        name = "studytrack",
        level = logging.INFO,
        log_dir: Path | None = None,
        max_bytes = 2 * 1024 * 1024,
        backup_count = 3,
        persistent = True,
        console = False,
        historical_debugs: int = 10
) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(logging.DEBUG if historical_debugs > 0 else level)

    log_dir = log_dir or PATHS.logs
    log_dir.mkdir(parents=True,exist_ok=True)
    fmt = logging.Formatter(LOG_FORMAT,LOG_DATE_FORMAT)

    # Rotating log that survives across runs
    if persistent:
        _attach(logger, f"{name}:persistent", lambda: RotatingFileHandler(
            filename=log_dir / f"{name}.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        ), level, fmt)

    # latest.log only ever holds the current run
    _attach(logger, f"{name}:latest", lambda: logging.FileHandler(
        filename=log_dir / "latest.log",
        mode="w",
        encoding="utf-8",
        delay=True,
    ), level, fmt)

    # Full DEBUG output, one file per run with only the newest few kept around
    if historical_debugs > 0:
        run_dir = log_dir / "debug"
        run_dir.mkdir(parents=True,exist_ok=True)
        added = _attach(logger, f"{name}:historical_debug", lambda: logging.FileHandler(
            filename=run_dir / f"{name}_{datetime.now():%Y-%m-%d_%H-%M-%S}.log",
            encoding="utf-8",
            delay=True,
        ), logging.DEBUG, fmt)
        if added:
            # The new run's file only appears on first write, so leave room for it
            prune_runs(run_dir, name, historical_debugs - 1)

    if console:
        _attach(logger, f"{name}:console", logging.StreamHandler, level, fmt)

    return logger

log = get_logger(level=level_from_env(logging.INFO),console=console_from_env(False),historical_debugs=10)
