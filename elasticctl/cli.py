import logging
import os
import sys
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from elasticctl.config import DEFAULT_ENV_FILE, Settings
from elasticctl.errors import DeployError
from elasticctl.modules.dispatcher import (
    AddNode, Backup, DeployMaster, Dispatcher, ExportCerts, Help, ImportCerts,
    Logs, RemoveMaster, RemoveNode, Status, StopMaster, StopNode,
)

logger = logging.getLogger("elasticctl")

app = typer.Typer(
    help="elasticctl - Elastic Stack Docker deployment manager.",
    no_args_is_help=True,
)


# Configure logging
def setup_logging(debug_mode: bool = False, settings: Optional[Settings] = None):
    """Configure logging based on debug mode and settings."""
    level = logging.DEBUG if debug_mode else getattr(
        logging, (settings.log_level if settings else "INFO").upper(), logging.INFO
    )
    handlers = [logging.StreamHandler()]
    if settings and settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=level,
        format=settings.log_format if settings else '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )
    # Disable debug logging for noisy libraries
    if not debug_mode:
        logging.getLogger('urllib3').setLevel(logging.WARNING)


def _run(ctx: typer.Context, build) -> None:
    """Build a command variant and dispatch it, mapping errors to exit codes."""
    try:
        ctx.obj.dispatch(build())
    except DeployError as e:
        logger.error(f"❌ {e}")
        raise typer.Exit(code=e.exit_code)


# Global options callback
@app.callback()
def main(
    ctx: typer.Context,
    env_file: Path = typer.Option(Path(DEFAULT_ENV_FILE), "--env-file", "-e", help="Configuration file"),
    project_dir: Optional[Path] = typer.Option(
        None, "--project-dir", "-C", help="Directory holding the compose files and ./data"
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """elasticctl - Elastic Stack Docker deployment manager."""
    if project_dir is not None and not env_file.is_absolute():
        env_file = project_dir / env_file
    try:
        settings = Settings.from_env(env_file, project_dir=project_dir)
    except DeployError as e:
        setup_logging(debug)
        logger.error(f"❌ {e}")
        raise typer.Exit(code=e.exit_code)

    setup_logging(debug, settings)
    if debug:
        logging.debug("Debug mode enabled")

    if ctx.obj is None:
        ctx.obj = Dispatcher(
            settings,
            env_file,
            confirm=lambda message: typer.confirm(message, default=False),
            prompt=typer.prompt,
            echo=typer.echo,
            usage=ctx.get_help,
        )


@app.command("deploy-master")
def deploy_master(ctx: typer.Context):
    """Deploy master node (Elasticsearch + Kibana + Fleet)."""
    _run(ctx, DeployMaster)


@app.command("add-node")
def add_node(ctx: typer.Context):
    """Deploy additional Elasticsearch data node."""
    _run(ctx, AddNode)


@app.command("export-certs")
def export_certs(ctx: typer.Context):
    """Export certificates from master node for new nodes."""
    _run(ctx, ExportCerts)


@app.command("import-certs")
def import_certs(
    ctx: typer.Context,
    path: Optional[str] = typer.Argument(None, help="Directory produced by export-certs"),
):
    """Import certificates on new node server."""
    _run(ctx, lambda: ImportCerts(path=path or ""))


@app.command("status")
def status(
    ctx: typer.Context,
    output: str = typer.Option("text", "--output", "-o", help="text, json or yaml"),
):
    """Show status of all containers and cluster health."""
    _run(ctx, lambda: Status(output=output))


@app.command("stop-master")
def stop_master(ctx: typer.Context):
    """Stop master node containers (preserves data)."""
    _run(ctx, StopMaster)


@app.command("stop-node")
def stop_node(ctx: typer.Context):
    """Stop additional node (preserves data)."""
    _run(ctx, StopNode)


@app.command("remove-master")
def remove_master(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Remove master node containers (preserves data)."""
    _run(ctx, lambda: RemoveMaster(assume_yes=yes))


@app.command("remove-node")
def remove_node(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Remove additional node (preserves data)."""
    _run(ctx, lambda: RemoveNode(assume_yes=yes))


@app.command("backup")
def backup(ctx: typer.Context):
    """Create backup of all data directories."""
    _run(ctx, Backup)


@app.command("logs")
def logs(
    ctx: typer.Context,
    service: Optional[str] = typer.Argument(None, help="Master container, kibana, fleet-server or all"),
    follow: bool = typer.Option(True, "--follow/--no-follow", help="Keep streaming new log lines"),
):
    """View logs of a service."""
    _run(ctx, lambda: Logs(service=service, follow=follow))


@app.command("serve")
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Address to bind"),
    port: int = typer.Option(8000, "--port", help="Port to listen on"),
):
    """Serve the read-only status API (requires ELASTICCTL_API_KEY)."""
    # The API process rebuilds its settings from the environment
    os.environ["ELASTICCTL_ENV_FILE"] = str(ctx.obj.env_file.resolve())
    os.environ["PROJECT_DIR"] = str(ctx.obj.settings.project_dir)
    uvicorn.run("elasticctl.api.main:app", host=host, port=port)


@app.command("help")
def help_(ctx: typer.Context):
    """Show this help message."""
    _run(ctx, Help)


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        logging.error(f"Error: {e}", exc_info=logging.getLogger().isEnabledFor(logging.DEBUG))
        sys.exit(1)
