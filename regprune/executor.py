import asyncio
import logging

from regprune.config import MAX_CONCURRENT_REQUESTS
from regprune.errors import RegistryError
from regprune.models import (
    CleanupPlan,
    DigestDeletion,
    ExecutionReport,
    ExecutionState,
    OperationResult,
)
from regprune.registry import RegistryClient


async def delete_digest(
    client: RegistryClient,
    repository: str,
    deletion: DigestDeletion,
    limiter: asyncio.Semaphore,
) -> OperationResult:
    async with limiter:
        try:
            await client.delete_manifest(repository, deletion.digest)
        except RegistryError as err:
            logging.error(
                f"Error deleting {repository}@{deletion.digest} "
                f"(tags: {', '.join(deletion.tags)}). {err}"
            )
            return OperationResult(
                repository=repository,
                digest=deletion.digest,
                tags=deletion.tags,
                success=False,
                reason=str(err),
            )
    logging.debug(f"Deleted {repository}@{deletion.digest}")
    return OperationResult(
        repository=repository, digest=deletion.digest, tags=deletion.tags, success=True
    )


async def execute_plan(
    client: RegistryClient,
    plan: CleanupPlan,
    dry_run: bool,
    limiter: asyncio.Semaphore | None = None,
) -> ExecutionReport:
    report = ExecutionReport(repository=plan.repository)

    if dry_run:
        report.results = [
            OperationResult(
                repository=plan.repository,
                digest=deletion.digest,
                tags=deletion.tags,
                success=True,
            )
            for deletion in plan.to_delete
        ]
        report.state = ExecutionState.REPORTED
        return report

    report.state = ExecutionState.EXECUTING
    limiter = limiter or asyncio.Semaphore(MAX_CONCURRENT_REQUESTS)
    tasks = [
        asyncio.create_task(delete_digest(client, plan.repository, deletion, limiter))
        for deletion in plan.to_delete
    ]
    report.results = list(await asyncio.gather(*tasks))
    report.state = ExecutionState.COMPLETED
    return report
