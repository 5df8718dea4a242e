# migrator/cli/commands/status.py

import click

from ..context import CLIContext, migration_command


@click.command('status')
@migration_command
def status(cli_context: CLIContext):
    """Show staging collection sizes and replay checkpoints"""
    from ...pipeline.runner import StageRunner

    runner = StageRunner(cli_context.migration)

    click.echo("Staging collections:")
    for name, count in runner.collection_counts().items():
        click.echo(f"   {name:<20} {count:,}")

    checkpoints = runner.checkpoints()
    if not checkpoints:
        click.echo("Replay checkpoints: none")
    else:
        click.echo("Replay checkpoints:")
        for checkpoint in checkpoints:
            state = "completed" if checkpoint["completed"] else f"next offset {checkpoint['next_offset']:,}"
            click.echo(f"   {checkpoint['phase']:<20} {checkpoint['batches']:,} batches, {state}")
    click.echo("Done.")
