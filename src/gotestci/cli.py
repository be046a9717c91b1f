import logging
import os
from typing import Any, Dict, Optional

import click
from rich.logging import RichHandler

from .core import BuildOrchestrator
from .errors import BuildError
from .models import BuildConfig
from .services.config_loader import ConfigLoader

DEFAULT_CONFIG_FILE = ".gotestci.yml"
CONTEXT_SETTINGS = {"help_option_names": ["-h", "-?"]}


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _load_config_values(config: Optional[str]) -> Dict[str, Any]:
    resolved_config = config
    if resolved_config is None:
        default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
        if os.path.exists(default_config_path):
            resolved_config = default_config_path

    try:
        return ConfigLoader().load(resolved_config)
    except BuildError as exc:
        raise click.ClickException(str(exc)) from exc


def _configure_logging(verbose: bool, log_file: Optional[str]):
    logger = logging.getLogger("gotestci")
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _build_config(config_values: Dict[str, Any], **overrides) -> BuildConfig:
    values = dict(config_values)
    for key, value in overrides.items():
        if value is not None:
            values[key] = value

    try:
        values["max_failures"] = int(values.get("max_failures", 0))
    except (TypeError, ValueError) as exc:
        raise click.ClickException("max_failures must be an integer.") from exc
    if values["max_failures"] < 0:
        raise click.ClickException("max_failures cannot be negative.")

    return ConfigLoader().build_config(values)


@click.command(context_settings=CONTEXT_SETTINGS)
@click.option(
    "-l",
    "run_locally",
    is_flag=True,
    default=None,
    help="Run locally only, don't bother with containers, just run the unit tests locally.",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option(
    "--max-failures",
    required=False,
    type=int,
    default=None,
    help="Number of failed test packages tolerated before the build fails (default: 0).",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(run_locally, config, max_failures, verbose, log_file):
    """Run the unit tests with coverage, inside a fresh build container unless told otherwise.

    Writes coverage.xml and junit.xml to the working directory.
    """
    config_values = _load_config_values(config)

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    _configure_logging(verbose, log_file)

    build_config = _build_config(
        config_values,
        run_locally=run_locally,
        max_failures=max_failures,
    )

    raise SystemExit(BuildOrchestrator(build_config).run())


@click.command(context_settings=CONTEXT_SETTINGS)
@click.argument("name", type=click.Choice(sorted(BuildOrchestrator.FUNCTIONS)))
@click.argument("args", nargs=-1)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
def functions(name, args, config, verbose):
    """Run a single build helper such as `build-container NAME DOCKERFILE`."""
    config_values = _load_config_values(config)
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    _configure_logging(verbose, _resolve_option(None, config_values, "log_file"))

    orchestrator = BuildOrchestrator(_build_config(config_values))
    raise SystemExit(orchestrator.dispatch(name, args))


if __name__ == "__main__":
    main()
