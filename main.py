import asyncio
import logging
import sys

from regprune.cleaner import cleanup_registry
from regprune.config import Args, load_config
from regprune.errors import RegistryError, ValidationError
from regprune.report import print_summary
from regprune.strategy import build_strategy
from regprune.utils import init_logger


def run(argv: list[str] | None = None) -> int:
    args = Args.from_args(argv)
    try:
        strategy = build_strategy(args.keep, args.older_than, args.pattern)
        config = load_config(args)
    except ValidationError as err:
        logging.critical(str(err))
        return 1

    init_logger(config)
    logging.debug(f"Strategy: {strategy}")
    logging.debug(f"Registry: {config.registry_url}")
    if config.dry_run:
        logging.warning("Running in dry-run mode, found tags will not be deleted")

    try:
        summary = asyncio.run(cleanup_registry(config, strategy))
    except RegistryError as err:
        logging.critical(f"Error when listing the registry catalog. {err}")
        logging.info("Check your configuration, urls, proxies and try again.")
        return 1

    print_summary(summary)
    return 0 if summary.success else 1


if __name__ == "__main__":
    sys.exit(run())
