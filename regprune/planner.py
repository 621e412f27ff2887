import logging
from datetime import datetime

from regprune.models import (
    CleanupPlan,
    DigestDeletion,
    Partition,
    RepositoryInventory,
    StrategyConfig,
)
from regprune.strategy import apply_strategy
from regprune.utils import short_digest


def apply_safety_filter(partition: Partition) -> Partition:
    """Keep every tag that shares its digest with a kept tag.

    Deleting a manifest removes all tags pointing at it, so such a tag can
    not be deleted without also deleting a kept one. A moved tag brings no
    new digest into the keep set, so a single pass is enough.
    """
    keep_digests = {tag.digest for tag in partition.keep}
    keep = list(partition.keep)
    delete = []
    for tag in partition.delete:
        if tag.digest in keep_digests:
            logging.warning(
                f"Skipping deletion of {tag.repository}:{tag.name}, "
                f"digest {short_digest(tag.digest)} is shared with a kept tag"
            )
            keep.append(tag)
        else:
            delete.append(tag)
    return Partition(keep=keep, delete=delete)


def build_plan(repository: str, partition: Partition) -> CleanupPlan:
    grouped: dict[str, DigestDeletion] = {}
    for tag in partition.delete:
        deletion = grouped.setdefault(
            tag.digest, DigestDeletion(digest=tag.digest, tags=[], created=tag.created)
        )
        deletion.tags.append(tag.name)

    return CleanupPlan(
        repository=repository,
        to_delete=list(grouped.values()),
        to_keep=list(partition.keep),
    )


def plan_repository(
    inventory: RepositoryInventory,
    strategy: StrategyConfig,
    now: datetime | None = None,
) -> CleanupPlan:
    partition = apply_safety_filter(apply_strategy(inventory, strategy, now))
    return build_plan(inventory.name, partition)
