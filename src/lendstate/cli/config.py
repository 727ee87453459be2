import click

from lendstate.cli import cli
from lendstate.config import CONFIG_FILE, config_to_toml, save_config_to_file, settings


@cli.group()
def config() -> None:
    """
    Configuration commands
    """


@config.command("show")
@click.option(
    "--json",
    "output_format",
    flag_value="json",
    help="Print the active configuration as JSON.",
)
@click.option(
    "--toml",
    "output_format",
    flag_value="toml",
    default=True,
    help="Print the active configuration as TOML (default).",
)
def config_show(output_format: str) -> None:
    """
    Print the active configuration, including environment overrides.
    """

    if output_format == "json":
        click.echo(settings.model_dump_json(indent=2))
    else:
        click.echo(config_to_toml(settings))


@config.command("init")
def config_init() -> None:
    """
    Write the active configuration to the config file.
    """

    if CONFIG_FILE.exists() and not click.confirm(
        f"A configuration file already exists at {CONFIG_FILE}. Do you want to overwrite it?",
        default=False,
    ):
        raise click.Abort

    save_config_to_file(settings, config_path=CONFIG_FILE)
    click.echo(f"Wrote configuration to {CONFIG_FILE}")
