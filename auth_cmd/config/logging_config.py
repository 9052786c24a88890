# auth_cmd/config/logging_config.py
# =============================================================================
# File: auth_cmd/config/logging_config.py
# Description: Logging configuration using the Rich framework
# =============================================================================

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from typing import Optional, Dict, Any

from rich.box import DOUBLE, HEAVY, MINIMAL
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.theme import Theme


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(key, '').lower()
    return value in ('true', '1', 'yes', 'on') if value else default


def get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


# Muted theme shared by every console this module creates
AUTHCMD_THEME = Theme({
    "debug": "magenta dim",
    "info": "green",
    "warning": "dark_goldenrod",
    "error": "red",
    "critical": "bold red",
    "success": "green3",
    "timestamp": "grey70",
    "logger_name": "grey35",
    "message": "grey85",
    "dim": "bright_black",
    "frame": "bright_blue",
    "header": "bold cyan",
})

PLAIN_FORMAT = "[%(asctime)s] [%(levelname)-8s] [%(name)-40s] %(message)s"
PLAIN_DATEFMT = "%Y-%m-%d %H:%M:%S"


class CorrelationRichHandler(RichHandler):
    """RichHandler that prefixes the correlation id when a record carries one."""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("rich_tracebacks", True)
        kwargs.setdefault("show_path", False)
        kwargs.setdefault("markup", False)
        super().__init__(*args, **kwargs)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            return f"[{correlation_id}] {message}"
        return message


class ProductionFormatter(logging.Formatter):
    """JSON formatter for production environments"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if get_env_bool('LOG_JSON_INCLUDE_EXTRAS', True):
            for extra_field in ("correlation_id", "aggregate_id", "topic", "offset"):
                if hasattr(record, extra_field):
                    log_obj[extra_field] = str(getattr(record, extra_field))

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


def get_logger_level_from_env(logger_name: str, default_level: int) -> int:
    """Get logger level from environment variable."""
    # e.g., "aiokafka" -> "LOGLEVEL_AIOKAFKA"
    # e.g., "authcmd.redpanda_adapter" -> "LOGLEVEL_AUTHCMD_REDPANDA_ADAPTER"
    env_name = f"LOGLEVEL_{logger_name.replace('.', '_').upper()}"

    level_str = os.getenv(env_name, '').upper()
    if level_str:
        level_map = {
            'DEBUG': logging.DEBUG,
            'INFO': logging.INFO,
            'WARNING': logging.WARNING,
            'WARN': logging.WARNING,
            'ERROR': logging.ERROR,
            'CRITICAL': logging.CRITICAL,
        }
        return level_map.get(level_str, default_level)

    return default_level


def setup_logging(
        service_name: str = "authcmd",
        log_level: Optional[str] = None,
        log_file: Optional[str] = None,
        enable_json: Optional[bool] = None,
) -> None:
    """
    Configure logging with Rich framework.

    Args:
        service_name: Name of the service (used for the startup logger)
        log_level: Override log level (LOG_LEVEL otherwise)
        log_file: Optional log file path (LOG_FILE otherwise)
        enable_json: Enable JSON formatting for production (LOG_JSON_FORMAT otherwise)
    """
    level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.getenv("LOG_FILE")

    if enable_json is None:
        enable_json = get_env_bool('LOG_JSON_FORMAT', False)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    use_rich = not enable_json and (sys.stdout.isatty() or get_env_bool("FORCE_COLOR", False))

    if use_rich:
        console = Console(
            theme=AUTHCMD_THEME,
            force_terminal=get_env_bool("FORCE_COLOR", False),
            width=get_env_int('LOG_CONSOLE_WIDTH', 0) or None,
        )
        root_logger.addHandler(CorrelationRichHandler(console=console))

    elif enable_json:
        json_handler = logging.StreamHandler(sys.stdout)
        json_handler.setFormatter(ProductionFormatter())
        root_logger.addHandler(json_handler)

    else:
        plain_handler = logging.StreamHandler(sys.stdout)
        plain_handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt=PLAIN_DATEFMT))
        root_logger.addHandler(plain_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=get_env_int('LOG_MAX_SIZE_MB', 100) * 1024 * 1024,
            backupCount=get_env_int('LOG_BACKUP_COUNT', 5),
            encoding=os.getenv('LOG_FILE_ENCODING', 'utf-8'),
        )
        # Always plain text in files
        file_handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt=PLAIN_DATEFMT))
        root_logger.addHandler(file_handler)

    default_noise_config = {
        "aiokafka": logging.WARNING,
        "aiokafka.consumer.group_coordinator": logging.WARNING,
        "kafka": logging.WARNING,
        "pymongo": logging.WARNING,
        "motor": logging.WARNING,
        "asyncio": logging.WARNING,

        "authcmd.redpanda_adapter": logging.INFO,
        "authcmd.event_bus.dispatcher": logging.INFO,
    }

    for logger_name, default_level in default_noise_config.items():
        logging.getLogger(logger_name).setLevel(get_logger_level_from_env(logger_name, default_level))

    logger = logging.getLogger(f"{service_name}.startup")
    logger.info(f"Logging configured for {service_name} service")


def log_worker_banner(logger: logging.Logger, worker_name: str, instance_id: str, version: Optional[str] = None):
    """Log a banner for worker startup"""
    if version is None:
        from auth_cmd import __version__
        version = __version__

    if not sys.stdout.isatty() and not get_env_bool("FORCE_COLOR", False):
        logger.info(f"{'=' * 60}")
        logger.info(f"  {worker_name.upper()} v{version}")
        logger.info(f"  Instance: {instance_id}")
        logger.info(f"{'=' * 60}")
        return

    console = Console(theme=AUTHCMD_THEME)

    banner_text = f"""[bold cyan]{worker_name.upper()}[/bold cyan]
[dim]Version {version}[/dim]

[bold]Instance:[/bold] {instance_id}
[bold]PID:[/bold] {os.getpid()}
[bold]Started:[/bold] {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"""

    banner = Panel(
        banner_text,
        title="[bold]WORKER STARTUP[/bold]",
        title_align="center",
        border_style="magenta",
        box=DOUBLE,
        padding=(1, 2),
        width=min(console.width - 2, 60),
    )

    console.print()
    console.print(banner)
    console.print()


def log_status_update(logger: logging.Logger, status: str, details: Optional[Dict[str, Any]] = None):
    """Log a status update with optional details"""
    if not sys.stdout.isatty() and not get_env_bool("FORCE_COLOR", False):
        logger.info(f"Status: {status}")
        for key, value in (details or {}).items():
            logger.info(f"  {key}: {value}")
        return

    console = Console(theme=AUTHCMD_THEME)

    status_text = f"[bold]Status:[/bold] [info]{status}[/info]"
    if details:
        status_text += "\n\n[bold]Details:[/bold]\n"
        for key, value in details.items():
            formatted_key = key.replace('_', ' ').title()
            if isinstance(value, (list, tuple)):
                status_text += f"  • {formatted_key}:\n"
                for item in value:
                    status_text += f"    - {item}\n"
            else:
                status_text += f"  • {formatted_key}: {value}\n"

    panel = Panel(
        status_text.strip(),
        border_style="info",
        box=MINIMAL,
        padding=(1, 2),
        width=min(console.width - 2, 90),
    )

    console.print()
    console.print(panel)


def log_error_box(logger: logging.Logger, error_msg: str, error_type: str = "Error"):
    """Log an error in a highlighted box"""
    # Always keep the error in the log stream as well
    logger.error(f"{error_type}: {error_msg}")

    if not sys.stderr.isatty() and not get_env_bool("FORCE_COLOR", False):
        return

    console = Console(theme=AUTHCMD_THEME, stderr=True)

    error_panel = Panel(
        f"[bold red]{error_type}:[/bold red]\n\n{error_msg}",
        border_style="red",
        box=HEAVY,
        padding=(1, 2),
        width=min(console.width - 2, 80),
    )

    console.print()
    console.print(error_panel)
    console.print()

# =============================================================================
# EOF
# =============================================================================
