"""CLI interface for tidymac."""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path

import click

from tidymac.core.engine import MaintenanceEngine
from tidymac.core.metadata import identity_from_bundle
from tidymac.core.privileges import PrivilegeBroker, osascript_available
from tidymac.errors import ScanCancelled, ScanPermissionDenied
from tidymac.models.deletion import DeletionSummary
from tidymac.models.leftover import AppIdentity
from tidymac.models.scan_result import ScanResult
from tidymac.settings import Settings
from tidymac.utils import bytes_to_human, format_elapsed, home_dir


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _build_engine() -> MaintenanceEngine:
    broker = PrivilegeBroker() if osascript_available() else None
    return MaintenanceEngine(broker=broker, settings=Settings.instance())


def _result_to_dict(result: ScanResult) -> dict:
    return {
        "category": result.category.id,
        "name": result.category.name,
        "total_bytes": result.total_bytes,
        "item_count": result.item_count,
        "skipped": result.skipped,
        "items": [
            {
                "path": str(item.path),
                "size_bytes": item.size_bytes,
                "modified": item.modified.isoformat() if item.modified else None,
            }
            for item in result.items
        ],
    }


def _summary_to_dict(summary: DeletionSummary) -> dict:
    return {
        "status": summary.kind,
        "message": summary.describe(),
        "succeeded": summary.succeeded,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "bytes_freed": summary.bytes_freed,
        "failures": [{"path": str(path), "reason": reason} for path, reason in summary.failures],
    }


def _echo_summary(summary: DeletionSummary) -> None:
    color = {"complete": "green", "partial": "yellow"}.get(summary.kind, "red")
    click.echo(f"\n{click.style(summary.describe(), fg=color, bold=True)}")
    for path, reason in summary.failures:
        click.echo(f"  {click.style('✗', fg='red')} {path} — {reason}")
    click.echo(f"Freed: {click.style(bytes_to_human(summary.bytes_freed), fg='green', bold=True)}\n")


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """tidymac: cache, log and leftover cleaner for macOS."""
    _setup_logging(verbose)


# ── categories ───────────────────────────────────────────────────────────

@main.command("categories")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def categories_cmd(as_json: bool) -> None:
    """List cleanup categories."""
    engine = _build_engine()
    categories = engine.catalog()

    if as_json:
        data = [
            {
                "id": c.id,
                "name": c.name,
                "description": c.description,
                "icon": c.icon,
                "paths": [str(p) for p in c.resolve_paths(home_dir())],
                "requires_elevated_access": c.requires_elevated_access,
                "requires_full_disk_access": c.requires_full_disk_access,
                "requires_user_consent": c.requires_user_consent,
            }
            for c in categories
        ]
        click.echo(json.dumps(data, indent=2))
        return

    for category in categories:
        tags = ""
        if category.requires_elevated_access:
            tags += click.style(" [requires admin]", fg="yellow")
        if category.requires_user_consent:
            tags += click.style(" [asks consent]", fg="blue")
        click.echo(f"  {click.style(category.id, fg='cyan', bold=True):30s}  {category.name}{tags}")
        click.echo(f"    {category.description}")


# ── scan ─────────────────────────────────────────────────────────────────

def _scan(engine: MaintenanceEngine, category_ids: tuple[str, ...], include_consent: bool) -> list[ScanResult]:
    if not category_ids:
        return engine.scan_all_categories(include_consent=include_consent)

    results = []
    for category_id in category_ids:
        if engine.get_category(category_id) is None:
            click.echo(f"Unknown category '{category_id}', skipping", err=True)
            continue
        try:
            result = engine.scan_category(category_id)
        except ScanPermissionDenied as exc:
            click.echo(f"  {click.style('✗', fg='red')} {category_id} — {exc}", err=True)
            continue
        if result.items:
            results.append(result)
    return results


@main.command()
@click.argument("category_ids", nargs=-1)
@click.option("--include-consent", is_flag=True, help="Also scan categories holding personal files")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(category_ids: tuple[str, ...], include_consent: bool, as_json: bool) -> None:
    """Scan for cleanable files (preview only, never deletes)."""
    engine = _build_engine()
    started = time.monotonic()
    try:
        results = _scan(engine, category_ids, include_consent)
    except ScanCancelled:
        click.echo("Scan cancelled.", err=True)
        sys.exit(1)

    order = {c.id: i for i, c in enumerate(engine.catalog())}
    results.sort(key=lambda r: order.get(r.category.id, len(order)))

    if as_json:
        click.echo(json.dumps([_result_to_dict(r) for r in results], indent=2))
        return

    if not results:
        click.echo("Nothing to clean.")
        return

    for result in results:
        admin = click.style(" [requires admin]", fg="yellow") if result.category.requires_elevated_access else ""
        click.echo(
            f"  {click.style('✓', fg='green')} {result.category.name:30s} — "
            f"{click.style(bytes_to_human(result.total_bytes), fg='green', bold=True)} "
            f"({result.item_count:,} items){admin}"
        )

    total = sum(r.total_bytes for r in results)
    click.echo(
        f"\nTotal reclaimable: {click.style(bytes_to_human(total), fg='green', bold=True)} "
        f"(scanned in {format_elapsed(time.monotonic() - started)})\n"
    )


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def estimate(as_json: bool) -> None:
    """Quick, capped size estimate per category."""
    engine = _build_engine()
    estimates = engine.quick_estimate()

    if as_json:
        data = {cid: {"total_bytes": info.total_bytes, "item_count": info.item_count} for cid, info in estimates.items()}
        click.echo(json.dumps(data, indent=2))
        return

    for category in engine.catalog():
        info = estimates.get(category.id)
        if info is None or info.total_bytes == 0:
            continue
        click.echo(f"  {category.name:30s} ~{bytes_to_human(info.total_bytes)} ({info.item_count:,}+ files)")


# ── leftovers ────────────────────────────────────────────────────────────

@main.command()
@click.argument("app_path", required=False, type=click.Path(path_type=Path))
@click.option("--bundle-id", default=None, help="Bundle identifier, e.g. com.acme.App")
@click.option("--name", default=None, help="Application display name")
@click.option("--delete", "delete_", is_flag=True, help="Move the found leftovers to the Trash")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def leftovers(
    app_path: Path | None,
    bundle_id: str | None,
    name: str | None,
    delete_: bool,
    yes: bool,
    as_json: bool,
) -> None:
    """Find files an application left in ~/Library."""
    if as_json and delete_ and not yes:
        raise click.UsageError("--json with --delete cannot ask for confirmation; add --yes")
    if app_path is not None:
        identity = identity_from_bundle(app_path)
        if bundle_id or name:
            identity = AppIdentity(
                bundle_id=bundle_id or identity.bundle_id,
                name=name or identity.name,
                path=identity.path,
            )
    elif bundle_id or name:
        identity = AppIdentity(bundle_id=bundle_id, name=name or "")
    else:
        raise click.UsageError("Give an application path or --bundle-id/--name")

    engine = _build_engine()
    found = engine.discover_leftovers(identity)

    if as_json and not delete_:
        data = [
            {
                "path": str(f.path),
                "category": f.category,
                "size_bytes": f.size_bytes,
                "confidence": f.confidence.value,
            }
            for f in found
        ]
        click.echo(json.dumps(data, indent=2))
        return

    if not found:
        click.echo(f"No leftovers found for {identity.name or identity.bundle_id}.")
        return

    if not as_json:
        colors = {"high": "green", "medium": "yellow", "low": "red"}
        for f in found:
            conf = click.style(f"[{f.confidence.value}]", fg=colors[f.confidence.value])
            click.echo(f"  {conf:18s} {f.category:20s} {bytes_to_human(f.size_bytes):>10s}  {f.path}")
        total = sum(f.size_bytes for f in found)
        click.echo(f"\nTotal: {click.style(bytes_to_human(total), fg='green', bold=True)}\n")

    if not delete_:
        return
    if not yes and not click.confirm("Move these leftovers to the Trash?"):
        click.echo("Aborted.")
        return

    summary = engine.delete_items([f.path for f in found if f.is_selected])
    if as_json:
        click.echo(json.dumps(_summary_to_dict(summary), indent=2))
    else:
        _echo_summary(summary)


# ── clean ────────────────────────────────────────────────────────────────

@main.command()
@click.argument("category_ids", nargs=-1)
@click.option("--include-consent", is_flag=True, help="Also clean categories holding personal files")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--dry-run", is_flag=True, help="Show what would be cleaned without doing it")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def clean(category_ids: tuple[str, ...], include_consent: bool, yes: bool, dry_run: bool, as_json: bool) -> None:
    """Scan and move selected categories to the Trash."""
    if as_json and not (yes or dry_run):
        raise click.UsageError("--json cannot ask for confirmation; add --yes or --dry-run")
    engine = _build_engine()

    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning...\n")
    try:
        results = _scan(engine, category_ids, include_consent)
    except ScanCancelled:
        click.echo("Scan cancelled.", err=True)
        sys.exit(1)

    if not results:
        if as_json:
            click.echo(json.dumps({"status": "nothing_to_clean", "results": []}))
        else:
            click.echo("Nothing to clean.")
        return

    if not as_json:
        for result in results:
            admin = click.style(" [requires admin]", fg="yellow") if result.category.requires_elevated_access else ""
            click.echo(
                f"  {click.style('✓', fg='green')} {result.category.name:30s} — "
                f"{click.style(bytes_to_human(result.selected_bytes), fg='green', bold=True)} "
                f"({result.item_count:,} items){admin}"
            )
        total = sum(r.selected_bytes for r in results)
        click.echo(f"\nTotal: {click.style(bytes_to_human(total), fg='green', bold=True)}\n")

    if dry_run:
        if as_json:
            data = [
                {"category": r.category.id, "would_free_bytes": r.selected_bytes, "item_count": r.item_count}
                for r in results
            ]
            click.echo(json.dumps({"status": "dry_run", "results": data}, indent=2))
        else:
            click.echo("(dry run — no files were moved)")
        return

    if not yes:
        choice = click.prompt("Clean all? [y/N/select]", default="n", show_default=False)
        match choice.lower():
            case "y" | "yes":
                pass
            case "select":
                ids_to_clean = _interactive_select(results)
                if not ids_to_clean:
                    click.echo("Nothing selected.")
                    return
                for result in results:
                    result.set_selected(result.category.id in ids_to_clean)
            case _:
                click.echo("Aborted.")
                return

    paths = [path for result in results for path in result.selected_paths()]
    if not as_json:
        click.echo(f"\n{click.style('🧹', bold=True)} Cleaning...")

    summary = engine.delete_items(paths)

    if as_json:
        click.echo(json.dumps(_summary_to_dict(summary), indent=2))
    else:
        _echo_summary(summary)


def _interactive_select(results: list[ScanResult]) -> set[str]:
    """Let the user pick which categories to clean."""
    click.echo("\nSelect categories to clean (enter numbers, comma-separated):\n")
    for i, r in enumerate(results, 1):
        click.echo(f"  [{i}] {r.category.name:30s} — {bytes_to_human(r.total_bytes)}")
    click.echo()
    raw = click.prompt("Selection", default="")
    if not raw.strip():
        return set()
    selected: set[str] = set()
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit():
            idx = int(part) - 1
            if 0 <= idx < len(results):
                selected.add(results[idx].category.id)
    return selected


# ── empty-trash ──────────────────────────────────────────────────────────

@main.command("empty-trash")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def empty_trash(yes: bool) -> None:
    """Permanently delete everything in the Trash."""
    if not yes and not click.confirm("Permanently delete everything in the Trash?"):
        click.echo("Aborted.")
        return
    engine = _build_engine()
    _echo_summary(engine.empty_trash())
