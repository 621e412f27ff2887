import asyncio
import logging

from regprune.config import MAX_CONCURRENT_REQUESTS
from regprune.errors import RegistryError
from regprune.models import RepositoryInventory, ResolutionError, TagInfo
from regprune.registry import RegistryClient


async def resolve_tag(
    client: RegistryClient, repository: str, tag: str, limiter: asyncio.Semaphore
) -> TagInfo | ResolutionError:
    async with limiter:
        try:
            digest, config_digest = await client.fetch_manifest(repository, tag)
            created = None
            if config_digest:
                created = await client.fetch_created_at(repository, config_digest)
            else:
                logging.debug(f"No image config for {repository}:{tag}, creation time unknown")
        except RegistryError as err:
            error = ResolutionError(repository=repository, tag=tag, reason=str(err))
            logging.error(str(error))
            return error
    return TagInfo(repository=repository, name=tag, digest=digest, created=created)


async def resolve_repository(
    client: RegistryClient,
    repository: str,
    max_concurrency: int = MAX_CONCURRENT_REQUESTS,
    limiter: asyncio.Semaphore | None = None,
) -> tuple[RepositoryInventory, list[ResolutionError]]:
    """Build the tag inventory of a repository.

    Tags are resolved concurrently, at most ``max_concurrency`` at a time
    unless a shared ``limiter`` is given. A tag that fails to resolve is
    reported in the returned error list and left out of the inventory.
    Errors from the tag listing itself are raised.
    """
    tags = await client.list_tags(repository)
    if not tags:
        logging.warning(f"No tags found for {repository}")
        return RepositoryInventory(name=repository), []

    limiter = limiter or asyncio.Semaphore(max_concurrency)
    tasks = [
        asyncio.create_task(resolve_tag(client, repository, tag, limiter))
        for tag in tags
    ]
    results = await asyncio.gather(*tasks)

    resolved: list[TagInfo] = []
    errors: list[ResolutionError] = []
    for result in results:
        if isinstance(result, ResolutionError):
            errors.append(result)
        else:
            resolved.append(result)

    logging.info(
        f"Resolved {len(resolved)} of {len(tags)} tags for {repository}"
        + (f", {len(errors)} failed" if errors else "")
    )
    return RepositoryInventory(name=repository, tags=resolved), errors
