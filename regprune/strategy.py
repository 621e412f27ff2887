import logging
import re
from datetime import datetime, timedelta

from regprune.errors import ValidationError
from regprune.models import (
    KeepRecent,
    OlderThan,
    Partition,
    Pattern,
    RepositoryInventory,
    StrategyConfig,
    TagInfo,
)
from regprune.utils import true_utcnow


def build_strategy(
    keep: int | None = None, older_than: int | None = None, pattern: str | None = None
) -> StrategyConfig:
    selected = [opt for opt in (keep, older_than, pattern) if opt is not None]
    if not selected:
        raise ValidationError(
            "No cleanup strategy specified. Use --keep, --older-than or --pattern"
        )
    if len(selected) > 1:
        raise ValidationError(
            "Options --keep, --older-than and --pattern are mutually exclusive. Please use one of them"
        )

    if keep is not None:
        if keep < 0:
            raise ValidationError(f"--keep must not be negative, got {keep}")
        return KeepRecent(n=keep)
    if older_than is not None:
        if older_than < 0:
            raise ValidationError(f"--older-than must not be negative, got {older_than}")
        return OlderThan(days=older_than)
    try:
        return Pattern(regex=re.compile(pattern))
    except re.error as err:
        raise ValidationError(f"Invalid regex pattern '{pattern}': {err}") from err


def keep_recent(tags: list[TagInfo], n: int) -> set[TagInfo]:
    dated = sorted(
        (tag for tag in tags if tag.created),
        key=lambda tag: (-tag.created.timestamp(), tag.name),  # type: ignore
    )
    return set(dated[n:])


def older_than(tags: list[TagInfo], days: int, now: datetime) -> set[TagInfo]:
    cutoff = now - timedelta(days=days)
    return {tag for tag in tags if tag.created and tag.created < cutoff}


def matching(tags: list[TagInfo], regex: re.Pattern) -> set[TagInfo]:
    return {tag for tag in tags if regex.search(tag.name)}


def apply_strategy(
    inventory: RepositoryInventory,
    strategy: StrategyConfig,
    now: datetime | None = None,
) -> Partition:
    """Split an inventory into provisional keep and delete lists.

    Tags without a known creation time are never selected by the age based
    strategies. Both lists keep the inventory order.
    """
    tags = inventory.tags
    match strategy:
        case KeepRecent(n=n):
            candidates = keep_recent(tags, n)
        case OlderThan(days=days):
            candidates = older_than(tags, days, now or true_utcnow())
        case Pattern(regex=regex):
            candidates = matching(tags, regex)
        case _:
            raise TypeError(f"Unknown strategy: {strategy!r}")

    partition = Partition(
        keep=[tag for tag in tags if tag not in candidates],
        delete=[tag for tag in tags if tag in candidates],
    )
    logging.debug(
        f"{inventory.name}: strategy '{strategy}' selected {len(partition.delete)} "
        f"of {len(tags)} tags for deletion"
    )
    return partition
