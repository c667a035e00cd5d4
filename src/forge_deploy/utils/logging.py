"""Logging for forge-deploy: coloured console lines plus a daily JSONL audit file.

Records may carry pipeline fields (phase, operation, target, snapshot_id,
duration). They are attached with ``LogContext`` or ``extra=`` and appear as
keys in the JSON file and as a bracketed prefix on the console.
"""

import logging
import json
import sys
from contextvars import ContextVar, Token
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


EXTRA_FIELDS = ('phase', 'operation', 'target', 'snapshot_id', 'duration')

DEFAULT_LOG_DIR = Path('.forge/logs')

NOISY_LOGGERS = ('boto3', 'botocore', 's3transfer', 'urllib3')


def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {name: getattr(record, name) for name in EXTRA_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, pipeline fields flattened into the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': datetime.utcfromtimestamp(record.created).isoformat() + 'Z',
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(_record_fields(record))
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short coloured lines for stderr, prefixed with the active phase or operation."""

    LEVEL_STYLES = {
        logging.DEBUG: '\033[2m',
        logging.INFO: '\033[34m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[1;31m',
    }
    RESET = '\033[0m'

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        level = f"{record.levelname:<8}"
        if self.use_color:
            level = f"{self.LEVEL_STYLES.get(record.levelno, '')}{level}{self.RESET}"

        scope = getattr(record, 'phase', None) or getattr(record, 'operation', None)
        text = record.getMessage()
        if scope:
            text = f"[{scope}] {text}"

        line = f"{clock} {level} {text}"
        if record.exc_info and record.levelno >= logging.ERROR:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(log_level: str = 'info', log_dir: Optional[Path] = None) -> None:
    """Route console output to stderr and the full debug stream to ``forge-YYYYMMDD.jsonl``.

    Args:
        log_level: Console threshold (debug, info, warning, error)
        log_dir: Directory for the JSONL files; ``.forge/logs`` when omitted
    """
    console_level = logging.getLevelName(log_level.upper())
    if not isinstance(console_level, int):
        console_level = logging.INFO

    directory = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(ConsoleFormatter(use_color=sys.stderr.isatty()))
    console.addFilter(ContextFilter())
    root.addHandler(console)

    audit_file = directory / f"forge-{datetime.utcnow():%Y%m%d}.jsonl"
    audit = logging.FileHandler(audit_file, encoding='utf-8')
    audit.setLevel(logging.DEBUG)
    audit.setFormatter(JSONFormatter())
    audit.addFilter(ContextFilter())
    root.addHandler(audit)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


_active_fields: ContextVar[Dict[str, Any]] = ContextVar('forge_log_fields', default={})


class ContextFilter(logging.Filter):
    """Copy the active ``LogContext`` fields onto records that do not already carry them.

    Fields passed with ``extra=`` win over the surrounding context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _active_fields.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class LogContext:
    """Attach fields to every record emitted inside the block.

    Handlers pick the fields up through ``ContextFilter``; ``setup_logging``
    installs one on each handler it creates.

    Example:
        with LogContext(logger, phase='configure'):
            logger.info('Running playbook')
    """

    def __init__(self, logger: logging.Logger, **fields: Any):
        self.logger = logger
        self.fields = fields
        self._token: Optional[Token] = None

    def __enter__(self) -> 'LogContext':
        self._token = _active_fields.set({**_active_fields.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _active_fields.reset(self._token)
            self._token = None
