import logging
import os
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, field_validator, model_validator
from pydantic import ValidationError as ModelValidationError
from yaml import YAMLError, safe_load

from regprune.errors import ValidationError

MAX_CONCURRENT_REQUESTS = 10
DEFAULT_TIMEOUT = 20
DEFAULT_PAGE_SIZE = 100
REGISTRY_ENV_VAR = "REGPRUNE_REGISTRY"
LOG_FORMAT = "[%(asctime)s] [%(levelname)-8s] |> %(message)s"
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)


def from_env(value: str | None) -> str | None:
    """Resolve the `__ENV: VAR_NAME` indirection used in config files."""
    if isinstance(value, str) and value.startswith("__ENV:"):
        return os.environ.get(value[6:].strip(), "") or None
    return value


class Args(BaseModel):
    registry: str | None = None
    repo: str | None = None
    keep: int | None = None
    older_than: int | None = None
    pattern: str | None = None
    dry_run: bool = False
    verbose: bool = False
    http_logs: bool = False
    config: Path | None = None

    @classmethod
    def from_args(cls, argv: list[str] | None = None) -> "Args":
        parser = ArgumentParser(
            prog="regprune",
            description="Safe tag cleanup for Docker Registry V2 servers",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        parser.add_argument(
            "--registry",
            help=f"Registry URL, e.g. http://localhost:5000. Falls back to ${REGISTRY_ENV_VAR}",
            default=os.environ.get(REGISTRY_ENV_VAR),
        )
        parser.add_argument(
            "--repo",
            help="Repository to clean. All repositories from the catalog when omitted",
            default=None,
        )
        parser.add_argument(
            "--keep",
            type=int,
            help="Keep the N most recent tags, delete the rest",
            default=None,
        )
        parser.add_argument(
            "--older-than",
            type=int,
            help="Delete tags created more than N days ago",
            default=None,
        )
        parser.add_argument(
            "--pattern",
            help="Delete tags whose name matches this regex",
            default=None,
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Print the cleanup plan without deleting anything",
            default=False,
        )
        parser.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            help="Enable debug logs",
            default=False,
        )
        parser.add_argument(
            "--http-logs",
            action="store_true",
            help="Enable http logs for every request",
            default=False,
        )
        parser.add_argument(
            "--config",
            type=Path,
            help="Optional YAML file with registry settings and credentials",
            default=None,
        )
        args = parser.parse_args(argv)
        return cls(**vars(args))


class Config(BaseModel):
    registry_url: str
    repository: str | None = None
    username: str | None = None
    password: str | None = None
    max_concurrent_requests: int = MAX_CONCURRENT_REQUESTS
    page_size: int = DEFAULT_PAGE_SIZE
    proxy: str | None = None
    timeout: int | None = DEFAULT_TIMEOUT
    log_file: Path | None = None
    dry_run: bool = False
    verbose: bool = False
    http_logs: bool = False

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Config":
        return Config.model_validate(data)

    @field_validator("username", "password", mode="before")
    @classmethod
    def handle_env_vars(cls, v: str | None) -> str | None:
        return from_env(v)

    @field_validator("registry_url")
    @classmethod
    def set_registry_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        parsed = urlparse(value)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("registry_url must be a valid url: <scheme>://<address>[:port]")
        if parsed.path.endswith("/v2"):
            logging.warning("Registry url should not contain '/v2', it is added to every request")
            value = value[: -len("/v2")]
        return value

    @field_validator("max_concurrent_requests")
    @classmethod
    def set_max_concurrent_requests(cls, value: int) -> int:
        if value <= 0:
            logging.error(f"Max_concurrent_requests must be greater than 0. Set {MAX_CONCURRENT_REQUESTS}")
            return MAX_CONCURRENT_REQUESTS
        return value

    @field_validator("page_size")
    @classmethod
    def set_page_size(cls, value: int) -> int:
        if value <= 0:
            logging.error(f"Page_size must be greater than 0. Set {DEFAULT_PAGE_SIZE}")
            return DEFAULT_PAGE_SIZE
        return value

    @field_validator("proxy", mode="before")
    @classmethod
    def set_proxy(cls, value: str | None) -> str | None:
        value = from_env(value)
        if not value:
            return None
        parsed = urlparse(value)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(
                "Field proxy must be a valid url: <scheme>://<address>[:port]; Remove value or fix it"
            )
        return value

    @field_validator("timeout")
    @classmethod
    def set_timeout(cls, value: int | None) -> int:
        if not value or not 0 < value <= 120:
            logging.error(f"Timeout must be in range 1-120. Set {DEFAULT_TIMEOUT}")
            return DEFAULT_TIMEOUT
        return value

    @model_validator(mode="after")
    def check_credentials(self) -> "Config":
        if bool(self.username) != bool(self.password):
            raise ValueError("Both username and password must be set, or neither")
        return self


def read_config_file(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r") as conf_file:
            data = safe_load(conf_file) or {}
    except (OSError, YAMLError) as err:
        raise ValidationError(f"Unable to read config file {path}: {err}") from err
    if not isinstance(data, dict):
        raise ValidationError(f"Config file {path} must contain a mapping")
    return data


def load_config(args: Args) -> Config:
    data = read_config_file(args.config) if args.config else {}
    if args.registry:
        data["registry_url"] = args.registry
    if not data.get("registry_url"):
        raise ValidationError(
            f"Registry url is not set. Use --registry, ${REGISTRY_ENV_VAR} or 'registry_url' in the config file"
        )

    try:
        return Config.from_dict(
            {
                **data,
                "repository": args.repo,
                "dry_run": args.dry_run,
                "verbose": args.verbose,
                "http_logs": args.http_logs,
            }
        )
    except ModelValidationError as e:
        raise ValidationError(f"Invalid config: {e}") from e
