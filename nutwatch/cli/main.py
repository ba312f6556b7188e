
import click
import logging

from nutwatch import __version__
from nutwatch.utils.logging import setup_logging

from .config import config_cli
from .monitor import list_vars, run, status


@click.group()
@click.version_option(__version__, prog_name='nutwatch')
@click.option('--verbose', '-v', is_flag=True, help='Enables verbose mode.')
@click.option('--quiet', '-q', is_flag=True, help='Enables quiet mode.')
@click.pass_context
def app(ctx, verbose, quiet):
    """
    nutwatch UPS shutdown monitor CLI.
    """
    ctx.ensure_object(dict)
    ctx.obj['VERBOSE'] = verbose
    ctx.obj['QUIET'] = quiet

    if verbose:
        setup_logging(force=True, level=logging.DEBUG)
    elif quiet:
        setup_logging(force=True, level=logging.ERROR)
    else:
        setup_logging()

# Add subcommands
app.add_command(run, name='run')
app.add_command(status, name='status')
app.add_command(list_vars, name='vars')
app.add_command(config_cli, name='config')

if __name__ == '__main__':
    app()
