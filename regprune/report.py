from regprune.models import CleanupPlan, RunSummary, TagInfo
from regprune.utils import Colors, short_digest

GC_COMMAND = (
    "docker exec <registry-container> bin/registry garbage-collect "
    "/etc/docker/registry/config.yml"
)


def paint(text: str, *colors: Colors) -> str:
    return f"{''.join(colors)}{text}{Colors.RESET}"


def format_tag_line(tag: TagInfo, digest: str, delete: bool) -> str:
    created = tag.created.strftime("%Y-%m-%d %H:%M:%S UTC") if tag.created else "unknown"
    label = paint("DELETE", Colors.RED, Colors.BOLD) if delete else paint("  KEEP", Colors.GREEN, Colors.BOLD)
    return f"    [{label}] {tag.name:<30} {paint(short_digest(digest), Colors.DIM)} {paint(created, Colors.DIM)}"


def render_plan(plan: CleanupPlan, dry_run: bool) -> str:
    header = f" {paint('DRY RUN', Colors.YELLOW, Colors.BOLD)} " if dry_run else ""
    suffix = " (no changes will be made)" if dry_run else ""
    lines = [f"\n{header}Repository: {paint(plan.repository, Colors.BOLD)}{suffix}", "─" * 60]

    if plan.to_delete:
        lines.append(
            f"  {paint('TO DELETE', Colors.RED, Colors.BOLD)} "
            f"({plan.tags_to_delete_count} tags, {len(plan.to_delete)} digests):"
        )
        for deletion in plan.to_delete:
            for name in deletion.tags:
                tag = TagInfo(
                    repository=plan.repository,
                    name=name,
                    digest=deletion.digest,
                    created=deletion.created,
                )
                lines.append(format_tag_line(tag, deletion.digest, delete=True))

    if plan.to_keep:
        lines.append(f"  {paint('KEEP', Colors.GREEN, Colors.BOLD)} ({len(plan.to_keep)}):")
        for tag in plan.to_keep:
            lines.append(format_tag_line(tag, tag.digest, delete=False))

    if not plan.to_delete:
        lines.append(f"  {paint('Nothing to delete.', Colors.GREEN)}")
    return "\n".join(lines)


def render_summary(summary: RunSummary) -> str:
    errors = str(summary.failures)
    if summary.failures:
        errors = paint(errors, Colors.RED, Colors.BOLD)
    deleted = paint(str(summary.tags_deleted), Colors.RED, Colors.BOLD)
    kept = paint(str(summary.tags_kept), Colors.GREEN, Colors.BOLD)

    lines = ["\n" + "═" * 60]
    if summary.dry_run:
        lines.append(
            f"{paint('DRY RUN SUMMARY:', Colors.YELLOW, Colors.BOLD)} Would delete {deleted} tags "
            f"({summary.digests_deleted} unique digests) in {summary.repositories} repositories, "
            f"keep {kept} tags, {errors} errors"
        )
    else:
        lines.append(
            f"{paint('SUMMARY:', Colors.BOLD)} Deleted {deleted} tags "
            f"({summary.digests_deleted} unique digests) in {summary.repositories} repositories, "
            f"kept {kept} tags, {errors} errors"
        )
        if summary.digests_deleted:
            lines.append(
                f"\n{paint('REMINDER:', Colors.YELLOW, Colors.BOLD)} "
                "Run registry garbage collection to reclaim disk space:"
            )
            lines.append(f"  {GC_COMMAND}")
    for error in summary.errors:
        lines.append(f"  {paint('ERROR', Colors.RED)} {error}")
    return "\n".join(lines)


def print_plan(plan: CleanupPlan, dry_run: bool) -> None:
    print(render_plan(plan, dry_run))


def print_summary(summary: RunSummary) -> None:
    print(render_summary(summary))
