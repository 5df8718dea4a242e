# migrator/cli/commands/stages.py

"""
Stage commands

extract -> stage 1 (snapshot + reindex)
replay  -> stage 2 (cleanup + load)
"""

import click

from ..context import CLIContext, migration_command


@click.command('extract')
@migration_command
def extract(cli_context: CLIContext):
    """Snapshot the ledger into staging and assign canonical ids

    Re-running is safe: every staging collection is reset before it is
    rebuilt.
    """
    from ...pipeline.runner import StageRunner

    results = StageRunner(cli_context.migration).run_extract()
    extract_stats = results["extract"]
    reindex_stats = results["reindex"]

    click.echo(f"Parents extracted: {extract_stats.parents:,}")
    click.echo(f"Details extracted: {extract_stats.details:,}")
    click.echo(f"Owners indexed:    {reindex_stats.owners:,}")
    click.echo(f"Parents indexed:   {reindex_stats.parents:,}")
    click.echo("Done.")


@click.command('replay')
@click.option('--resume', is_flag=True, help='Continue each phase from its last checkpoint')
@click.option('--dry-run', is_flag=True, help='Build and log every batch without calling the ledger')
@click.option('--batch-size', type=click.IntRange(min=1),
              help='Records per ledger call (default: CLAIMS_FOR_ONE_ITERATION)')
@migration_command
def replay(cli_context: CLIContext, resume, dry_run, batch_size):
    """Purge the legacy ledger indexes, then load the reindexed details

    Examples:
        # Full replay
        replay

        # Check the batches without writing
        replay --dry-run -v

        # Continue after a failed batch
        replay --resume
    """
    from ...pipeline.runner import StageRunner

    stats = StageRunner(cli_context.migration).run_replay(
        resume=resume,
        dry_run=dry_run,
        batch_size=batch_size,
    )

    for phase in stats.phases:
        suffix = " (already done)" if phase.skipped else ""
        click.echo(f"{phase.phase}: {phase.batches:,} batches, {phase.records:,} records{suffix}")
    if stats.dry_run:
        click.echo("Dry run: no ledger calls were made")
    click.echo("Done.")
