#!/usr/bin/env python3
"""
Supplier consolidation — CLI entry point.

Usage examples:
  python main.py check                                  # Show database location and counts
  python main.py import-csv --suppliers data/suppliers.csv --materials data/materials.csv
  python main.py list                                   # Supplier overview, duplicates first
  python main.py list --search verf
  python main.py duplicates                             # Only the possible duplicates
  python main.py stats                                  # Revenue and material usage
  python main.py suggest "Lokale Verfwinkel"            # Ranked merge targets
  python main.py merge "Lokale Verfwinkel" 3f2a...      # Merge into supplier id 3f2a...
  python main.py resume-merge 9b1c...                   # Continue a partial merge
  python main.py retire 3f2a...                         # Suspend or delete a supplier
"""
import logging
import sys
from pathlib import Path

import click

from config import Config
from consolidation.csv_import import import_csv
from consolidation.database import Database
from consolidation.errors import PartialFailureError, SupplierError
from consolidation.merger import SupplierMerger
from consolidation.supplier_service import SupplierService


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )


def _fail(exc: SupplierError) -> None:
    click.echo(f"✗ {exc.message}", err=True)
    if isinstance(exc, PartialFailureError):
        for material_id, error in exc.failed.items():
            click.echo(f"    {material_id}: {error}", err=True)
        click.echo(f"  → Run: python main.py resume-merge {exc.intent_id}", err=True)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--db", "db_path", default=None, type=click.Path(), help="Path to the SQLite database")
@click.option("--company", default=None, help="Restrict to one company id")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db_path: str | None, company: str | None) -> None:
    """Supplier consolidation — find, inspect and merge duplicate suppliers."""
    _setup_logging(verbose)
    config = Config()
    if db_path:
        config.db_path = Path(db_path)
    if company:
        config.company_id = company
    config.ensure_output_dir()

    db = Database(config.db_path)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["db"] = db
    ctx.obj["service"] = SupplierService(db, config)


# --------------------------------------------------------------------
# check / import
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Show the database location and what it contains."""
    config: Config = ctx.obj["config"]
    stats = ctx.obj["db"].get_stats()

    click.echo("\n=== Supplier Database ===\n")
    click.echo(f"  Database:          {config.db_path}")
    click.echo(f"  Company scope:     {config.company_id or '(all)'}")
    click.echo(f"  Suppliers:         {stats.get('suppliers', 0)} ({stats.get('suspended', 0)} suspended)")
    click.echo(f"  Materials:         {stats.get('materials', 0)}")
    click.echo(f"  Invoices:          {stats.get('invoices', 0)}")
    click.echo(f"  Open merges:       {stats.get('open_merges', 0)}")
    click.echo(f"  Similarity cutoff: {config.duplicate_similarity_threshold:.2f}")
    click.echo()


@cli.command("import-csv")
@click.option("--suppliers", default=None, type=click.Path(exists=True), help="Suppliers CSV")
@click.option("--materials", default=None, type=click.Path(exists=True), help="Materials CSV")
@click.option("--invoices", default=None, type=click.Path(exists=True), help="Invoices CSV")
@click.pass_context
def import_csv_cmd(
    ctx: click.Context,
    suppliers: str | None,
    materials: str | None,
    invoices: str | None,
) -> None:
    """Load suppliers, materials and/or invoices from CSV files."""
    if not (suppliers or materials or invoices):
        click.echo("Nothing to import: pass --suppliers, --materials and/or --invoices.", err=True)
        sys.exit(1)
    counts = import_csv(ctx.obj["db"], suppliers, materials, invoices)
    click.echo(
        f"Imported {counts['suppliers']} suppliers, "
        f"{counts['materials']} materials, {counts['invoices']} invoices."
    )


# --------------------------------------------------------------------
# list / duplicates / stats / suggest
# --------------------------------------------------------------------

@cli.command("list")
@click.option("--search", "-s", default=None, help="Filter on name, e-mail, VAT, address or phone")
@click.pass_context
def list_cmd(ctx: click.Context, search: str | None) -> None:
    """List suppliers: possible duplicates first, then by invoice count."""
    service: SupplierService = ctx.obj["service"]
    entries = service.overview(ctx.obj["config"].company_id, search)
    if not entries:
        click.echo("No suppliers found.")
        return

    for entry in entries:
        identity = entry.identity
        flags = []
        if identity.is_inferred:
            flags.append("inferred")
        elif identity.status == "suspended":
            flags.append("suspended")
        if entry.is_possible_duplicate:
            flags.append("possible duplicate")
        flag_str = f"  [{', '.join(flags)}]" if flags else ""
        key = identity.id or "-"
        click.echo(
            f"  {identity.name:<36} {key:<34} "
            f"{entry.invoice_count:>4} invoices {entry.stats.material_count:>4} materials{flag_str}"
        )


@cli.command()
@click.pass_context
def duplicates(ctx: click.Context) -> None:
    """Show only the suppliers flagged as possible duplicates."""
    service: SupplierService = ctx.obj["service"]
    flagged = [e for e in service.overview(ctx.obj["config"].company_id) if e.is_possible_duplicate]
    if not flagged:
        click.echo("✓ No possible duplicates found.")
        return
    click.echo(f"⚠  {len(flagged)} suppliers look like duplicates:")
    for entry in flagged:
        identity = entry.identity
        kind = "inferred" if identity.is_inferred else identity.id
        vat = identity.vat_number or "no VAT"
        click.echo(f"   {identity.name}  ({kind}, {vat})")


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Approved revenue (total and this month) and material counts per supplier."""
    service: SupplierService = ctx.obj["service"]
    click.echo(f"  {'Supplier':<36} {'Total':>12} {'This month':>12} {'Invoices':>9} {'Materials':>10}")
    for entry in service.overview(ctx.obj["config"].company_id):
        s = entry.stats
        click.echo(
            f"  {entry.identity.name:<36} {s.total_approved_revenue:>12.2f} "
            f"{s.current_month_approved_revenue:>12.2f} {s.approved_invoice_count:>9} "
            f"{s.material_count:>10}"
        )


@cli.command()
@click.argument("source_name")
@click.pass_context
def suggest(ctx: click.Context, source_name: str) -> None:
    """Rank the supplier profiles SOURCE_NAME could be merged into."""
    service: SupplierService = ctx.obj["service"]
    company_id = ctx.obj["config"].company_id
    try:
        source = service.find_identity(name=source_name, company_id=company_id)
    except SupplierError as exc:
        _fail(exc)
    candidates = service.merge_candidates(source, company_id)
    if not candidates:
        click.echo(f"No merge candidates for '{source_name}'.")
        return
    for c in candidates:
        click.echo(f"  {c.score:>3}  {c.supplier.name:<36} {c.supplier.id}  ({c.match_method})")


# --------------------------------------------------------------------
# merge / resume-merge / retire
# --------------------------------------------------------------------

@cli.command()
@click.argument("source_name")
@click.argument("target_id")
@click.option("--source-id", default=None, help="Source supplier id, when several share the name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def merge(
    ctx: click.Context,
    source_name: str,
    target_id: str,
    source_id: str | None,
    yes: bool,
) -> None:
    """
    Merge supplier SOURCE_NAME into the supplier profile TARGET_ID.

    \b
    Every material naming the source is repointed to the target; the source
    profile (if it has one) is deleted. Invoices keep their original
    supplier name.
    """
    service: SupplierService = ctx.obj["service"]
    company_id = ctx.obj["config"].company_id
    try:
        source = service.find_identity(name=source_name, supplier_id=source_id, company_id=company_id)
        if not yes:
            click.confirm(
                f"Merge '{source.name}' into supplier {target_id}? "
                f"'{source.name}' will be {'merged' if source.is_inferred else 'deleted'}.",
                abort=True,
            )
        result = SupplierMerger(ctx.obj["db"]).merge(source, target_id, actor="cli")
    except SupplierError as exc:
        _fail(exc)

    click.echo(f"✓ {result.materials_migrated} materials linked to '{result.target_name}'.")
    if result.materials_skipped:
        click.echo(f"  {result.materials_skipped} materials changed meanwhile and were skipped.")
    if result.source_deleted:
        click.echo(f"  Supplier '{result.source_name}' deleted.")


@cli.command("resume-merge")
@click.argument("intent_id")
@click.pass_context
def resume_merge(ctx: click.Context, intent_id: str) -> None:
    """Continue a merge that was interrupted or partially failed."""
    try:
        result = SupplierMerger(ctx.obj["db"]).resume(intent_id, actor="cli")
    except SupplierError as exc:
        _fail(exc)
    click.echo(
        f"✓ Merge {result.intent_id} complete: {result.materials_migrated} materials "
        f"linked to '{result.target_name}'."
    )


@cli.command()
@click.argument("supplier_id")
@click.pass_context
def retire(ctx: click.Context, supplier_id: str) -> None:
    """Suspend SUPPLIER_ID if data refers to it, otherwise delete it."""
    service: SupplierService = ctx.obj["service"]
    try:
        identity = service.find_identity(supplier_id=supplier_id, company_id=ctx.obj["config"].company_id)
        outcome = service.retire_supplier(identity, actor="cli")
    except SupplierError as exc:
        _fail(exc)
    click.echo(f"✓ Supplier '{identity.name}' {outcome}.")


if __name__ == "__main__":
    cli()
