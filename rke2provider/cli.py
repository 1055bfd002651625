import logging
import sys
from pathlib import Path
from typing import Optional

import typer
import yaml

from rke2provider.config import Config
from rke2provider.modules.rke2.environment import EffectiveEnvironment
from rke2provider.modules.rke2.models import ClusterDescriptor, EnvStrategy
from rke2provider.modules.rke2.render import CONFIG_DIR, CONFIG_FILE, render, to_yaml
from rke2provider.modules.rke2.schema import validation_errors
from rke2provider.modules.rke2.utils import merge_fragments, write_yaml_file
from rke2provider.plugin import EVENT_CLUSTER_PROVISION, PluginError, default_provider
from rke2provider import plugin

app = typer.Typer()

# Global debug flag
debug_mode = False

# Configure logging
def setup_logging(debug_mode: bool = False):
    """Configure logging based on debug mode; everything goes to stderr."""
    log_level = logging.DEBUG if debug_mode else Config.LOG_LEVEL
    logging.basicConfig(
        level=log_level,
        format=Config.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )

def resolve_strategy(value: Optional[str]) -> EnvStrategy:
    """Pick the env strategy from the CLI value or Config.ENV_STRATEGY."""
    source = "--env-strategy" if value else "RKE2_PROVIDER_ENV_STRATEGY"
    value = (value or Config.ENV_STRATEGY).lower()
    try:
        return EnvStrategy(value)
    except ValueError:
        choices = ", ".join(s.value for s in EnvStrategy)
        raise typer.BadParameter(f"{value!r} is not one of: {choices}", param_hint=source)

# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """RKE2 cluster provider - renders node boot configuration."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug)
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Debug mode enabled")

@app.command(EVENT_CLUSTER_PROVISION)
def cluster_provision(
    env_strategy: Optional[str] = typer.Option(None, help="Environment file flavour (containerd or plain)"),
):
    """Handle the host's cluster provision event (JSON on stdin, JSON on stdout)."""
    strategy = resolve_strategy(env_strategy)
    try:
        plugin.run(EVENT_CLUSTER_PROVISION, sys.stdin, sys.stdout, default_provider(strategy))
    except PluginError as e:
        logging.error(f"Plugin failure: {e}")
        raise typer.Exit(code=1)

@app.command("render")
def render_cmd(
    role: str = typer.Option(..., help="Node role: init, controlplane or worker"),
    token: str = typer.Option("", help="Cluster join token"),
    control_plane_host: str = typer.Option("", help="Control plane hostname or IP"),
    options_file: Optional[Path] = typer.Option(None, help="YAML file with RKE2 user options"),
    env_strategy: Optional[str] = typer.Option(None, help="Environment file flavour (containerd or plain)"),
    scan: bool = typer.Option(True, "--scan/--no-scan", help="Read env entries from cloud-config directories"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the document here instead of stdout"),
):
    """Render the boot configuration for a node and print it as YAML."""
    strategy = resolve_strategy(env_strategy)
    options = ""
    if options_file:
        if not options_file.exists():
            raise typer.BadParameter(f"file not found: {options_file}", param_hint="--options-file")
        options = options_file.read_text()

    cluster = ClusterDescriptor(
        role=role,
        cluster_token=token,
        control_plane_host=control_plane_host,
        options=options,
    )
    env = EffectiveEnvironment.from_process() if scan else EffectiveEnvironment.build()
    document = to_yaml(render(cluster, env, strategy=strategy))

    if output:
        output.write_text(document)
        logging.info(f"Wrote boot configuration to {output}")
    else:
        typer.echo(document, nl=False)

@app.command("merge")
def merge_cmd(
    config_dir: Path = typer.Option(Path(CONFIG_DIR), help="Directory holding the config fragments"),
    output: Path = typer.Option(Path(CONFIG_FILE), help="Consolidated config file"),
):
    """Merge the config fragments the same way the boot command does."""
    try:
        merged = merge_fragments(config_dir)
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to merge {config_dir}: {e}")
        raise typer.Exit(code=1)
    write_yaml_file(output, merged)
    typer.echo(f"Merged {config_dir} into {output}")

@app.command("validate")
def validate_cmd(
    document: Path = typer.Argument(..., help="Rendered YAML document or plugin JSON response"),
):
    """Check a rendered document against the boot configuration schema."""
    try:
        data = yaml.safe_load(document.read_text())
    except (OSError, yaml.YAMLError) as e:
        typer.echo(f"Could not read {document}: {e}")
        raise typer.Exit(code=1)

    # Accept a raw plugin response as well
    if isinstance(data, dict) and set(data) >= {"state", "data", "error"}:
        data = yaml.safe_load(data["data"] or "{}")

    errors = validation_errors(data)
    if errors:
        for error in errors:
            typer.echo(f"Invalid: {error}")
        raise typer.Exit(code=1)
    typer.echo(f"Valid: {document}")

def run():
    """Console entry point; unexpected failures exit with status 1."""
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)

if __name__ == "__main__":
    run()
