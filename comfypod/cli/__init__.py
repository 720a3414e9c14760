"""
ComfyPod CLI - Command line interface.

Entry points for the container: `comfypod start` is the entrypoint,
`comfypod health` and `comfypod validate-models` run a single check.
"""
import json
import sys

import click
from loguru import logger

from comfypod import __version__
from comfypod.core.exceptions import ConfigurationError
from comfypod.ui.console import get_console


def _load_config_or_exit(strict: bool = True):
    from comfypod.config import load_config

    try:
        return load_config(strict=strict)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="comfypod")
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, verbose):
    """
    ComfyPod - GPU pod startup for ComfyUI.
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    from comfypod.utils.logger import setup_logger
    setup_logger(verbose=verbose)


@cli.command()
def start():
    """
    Check the environment, start auxiliary services, then run ComfyUI.

    Blocks while ComfyUI runs and exits 1 when it stops. Invalid settings
    fall back to their defaults; only a missing ComfyUI install is fatal.
    """
    config = _load_config_or_exit(strict=False)

    from comfypod.orchestrator import StartupOrchestrator

    orchestrator = StartupOrchestrator(config)
    sys.exit(orchestrator.run())


@cli.command()
@click.option('--json', 'as_json', is_flag=True, help='Print the report as JSON')
def health(as_json):
    """Verify GPU, CUDA and PyTorch. Exits 1 on 3+ issues."""
    config = _load_config_or_exit()

    from comfypod.health import print_health_report, run_health_checks

    report = run_health_checks(timeout=config.health_probe_timeout)
    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        print_health_report(report, get_console())
    sys.exit(report.exit_code)


@cli.command(name="validate-models")
@click.option('--json', 'as_json', is_flag=True, help='Print the report as JSON')
def validate_models(as_json):
    """Verify model files. Exits 1 only when a file is corrupted."""
    config = _load_config_or_exit()

    from comfypod.config import load_model_specs
    from comfypod.models import run_model_validation

    try:
        specs = load_model_specs(config.models_file)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    report = run_model_validation(config.model_dir, specs, get_console(), quiet=as_json)
    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    sys.exit(report.exit_code)


@cli.command()
def version():
    """Show version information."""
    click.echo(f"ComfyPod v{__version__}")


def main():
    """Entry point for the comfypod CLI."""
    cli()


if __name__ == "__main__":
    main()
