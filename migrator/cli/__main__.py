# migrator/cli/__main__.py

"""
Claims Migrator CLI

Usage: python -m migrator.cli [command] [options]

Stage 1 snapshots the ledger into staging and reindexes it; stage 2 replays
the reindexed snapshot onto the ledger.
"""

import click

from migrator.cli.context import CLIContext


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, verbose):
    """Claims Migrator - ledger -> staging -> ledger migration tool

    \b
    Stages:
    - extract: snapshot parents and details into staging, assign canonical ids
    - replay:  purge legacy ledger indexes, then load details in canonical order
    - status:  show staging collections and replay checkpoints
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    # Tests inject env vars and a ledger client through obj
    cli_context = CLIContext(
        verbose=verbose,
        env_vars=ctx.obj.get('env'),
        ledger=ctx.obj.get('ledger'),
    )
    ctx.obj['cli_context'] = cli_context
    ctx.call_on_close(cli_context.shutdown)


from migrator.cli.commands.stages import extract, replay
from migrator.cli.commands.status import status

cli.add_command(extract)
cli.add_command(replay)
cli.add_command(status)


if __name__ == '__main__':
    cli()
