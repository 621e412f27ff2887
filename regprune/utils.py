import base64
import logging
from datetime import datetime, timezone
from enum import StrEnum
from logging import LogRecord

from regprune.config import LOG_FORMAT, Config

MANIFEST_MEDIA_TYPES = (
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.oci.image.index.v1+json",
)


class Colors(StrEnum):
    RED = "\033[31m"
    CRED = "\033[91m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RESET = "\033[0m"


class ColoredFormatter(logging.Formatter):
    def __init__(self, fmt: str | None = None, *args, **kwargs) -> None:
        self.format_ = fmt
        self.FORMATS = {
            logging.WARNING: f"{Colors.YELLOW}{self.format_}{Colors.RESET}",
            logging.ERROR: f"{Colors.RED}{self.format_}{Colors.RESET}",
            logging.CRITICAL: f"{Colors.CRED}{self.format_}{Colors.RESET}",
        }
        super().__init__(fmt, *args, **kwargs)

    def format(self, record: LogRecord) -> str:
        log_fmt = self.FORMATS.get(record.levelno, self.format_)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


def init_logger(config: Config) -> None:
    if not config.http_logs:
        logging.getLogger("httpx").disabled = True
        logging.getLogger("httpcore").disabled = True

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(ColoredFormatter(LOG_FORMAT))
    handlers: list[logging.Handler] = [stream_handler]

    if config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        handlers=handlers,
        force=True,
    )


def build_headers(config: Config) -> dict[str, str]:
    headers = {
        "Accept": ", ".join(MANIFEST_MEDIA_TYPES),
        "User-Agent": "regprune",
        "Docker-Distribution-API-Version": "registry/2.0",
    }
    if config.username and config.password:
        basic_auth = base64.standard_b64encode(
            f"{config.username}:{config.password}".encode()
        ).decode()
        headers["Authorization"] = f"Basic {basic_auth}"
    return headers


def true_utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def short_digest(digest: str) -> str:
    return digest[:19] if len(digest) > 19 else digest
