import asyncio
import logging
from datetime import datetime

import httpx

from regprune.config import Config
from regprune.errors import RegistryError
from regprune.executor import execute_plan
from regprune.models import RunSummary, StrategyConfig
from regprune.planner import plan_repository
from regprune.registry import RegistryClient
from regprune.report import print_plan
from regprune.resolver import resolve_repository


async def clean_repository(
    client: RegistryClient,
    repository: str,
    strategy: StrategyConfig,
    summary: RunSummary,
    limiter: asyncio.Semaphore,
    now: datetime | None = None,
) -> None:
    try:
        inventory, resolution_errors = await resolve_repository(
            client, repository, limiter=limiter
        )
    except RegistryError as err:
        error = f"Error getting tags for {repository}. {err}"
        logging.critical(error)
        summary.record_error(error)
        return

    summary.repositories += 1
    for resolution_error in resolution_errors:
        summary.record_error(str(resolution_error))
    if not inventory.tags:
        return

    plan = plan_repository(inventory, strategy, now)
    print_plan(plan, summary.dry_run)
    summary.tags_kept += len(plan.to_keep)

    report = await execute_plan(client, plan, summary.dry_run, limiter)
    for result in report.succeeded:
        summary.digests_deleted += 1
        summary.tags_deleted += len(result.tags)
    for result in report.failed:
        summary.record_error(
            f"Error deleting {result.repository}@{result.digest} "
            f"(tags: {', '.join(result.tags)}). {result.reason}"
        )


async def cleanup_registry(
    config: Config,
    strategy: StrategyConfig,
    transport: httpx.AsyncBaseTransport | None = None,
    now: datetime | None = None,
) -> RunSummary:
    """Plan and run the cleanup of one repository or of the whole catalog.

    A catalog failure is raised. Any other failure is recorded in the
    returned summary and the remaining repositories are still processed.
    """
    summary = RunSummary(dry_run=config.dry_run)
    limiter = asyncio.Semaphore(config.max_concurrent_requests)

    async with RegistryClient.from_config(config, transport=transport) as client:
        if config.repository:
            repositories = [config.repository]
        else:
            logging.debug("No repository specified, fetching catalog")
            repositories = [repo async for repo in client.list_repositories()]

        if not repositories:
            logging.warning("No repositories found")
            return summary
        logging.info(f"Found repositories: {' '.join(repositories)}")

        for repository in repositories:
            await clean_repository(client, repository, strategy, summary, limiter, now)

    return summary
