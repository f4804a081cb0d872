"""
recrelay – CLI entrypoint (Click group)

Subcommands:
- serve: run the recording control and webhook HTTP service
- check-config: verify every required setting is present
- query: list the files Agora reports for a recording session
- relay: locate and relay a finished recording by hand (e.g. after a lost webhook)
"""

import logging
import os
from typing import Any

import rich_click as click
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TransferSpeedColumn,
)

from recrelay import __version__
from recrelay.agora_client import AgoraClient
from recrelay.config import Config
from recrelay.exceptions import ConfigurationError, LocatorError, RecrelayError
from recrelay.locator import FileLocator, select_media_file
from recrelay.logger import setup_logging
from recrelay.output import OutputFormatter
from recrelay.relay import RelayPipeline, TransferProgress
from recrelay.session_store import SessionRegistry
from recrelay.storage import S3ObjectStore

click.rich_click.TEXT_MARKUP = "rich"
click.rich_click.SHOW_ARGUMENTS = True

logger = logging.getLogger(__name__)


def _autoload_dotenv() -> None:
    """Load a local .env file for CLI usage unless RECRELAY_NO_DOTENV is set.

    Existing environment variables are never overridden.
    """
    if os.getenv("RECRELAY_NO_DOTENV"):
        return
    from dotenv import find_dotenv, load_dotenv

    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path, override=False)


def _load_config(config_path: str | None) -> Config:
    return Config(env_file=config_path)


def _agora_client(cfg: Config) -> AgoraClient:
    return AgoraClient(
        str(cfg.agora_app_id),
        str(cfg.agora_customer_id),
        str(cfg.agora_customer_secret),
        base_url=cfg.agora_api_base_url,
    )


def _report_error(formatter: OutputFormatter, error: Exception, debug: bool) -> None:
    if isinstance(error, RecrelayError):
        formatter.output_error(error.message, error.details)
    else:
        formatter.output_error(f"Unexpected error: {error}")
    if debug:
        raise error
    raise SystemExit(1)


config_option = click.option(
    "--config", "config_path", type=click.Path(), help="JSON/YAML/.env config file"
)
json_option = click.option("--json", "json_mode", is_flag=True, help="JSON output mode")
verbose_option = click.option("--verbose", "-v", is_flag=True, help="Verbose mode")
debug_option = click.option("--debug", "-d", is_flag=True, help="Debug mode")


@click.group(help="recrelay – Agora cloud recording control and relay to S3")
@click.version_option(version=__version__)
def cli() -> None:
    """Top-level Click group."""
    _autoload_dotenv()


@cli.command()
@config_option
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind address")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port")
@verbose_option
def serve(config_path: str | None, host: str, port: int, verbose: bool) -> None:
    """Run the HTTP service (recording control + Agora webhook)."""
    import uvicorn

    from recrelay.app import create_app

    cfg = _load_config(config_path)
    setup_logging(level=cfg.log_level, verbose=verbose)
    uvicorn.run(
        create_app(cfg),
        host=host,
        port=port,
        log_config=None,
        log_level="debug" if verbose else cfg.log_level.lower(),
    )


@cli.command("check-config")
@config_option
@json_option
def check_config(config_path: str | None, json_mode: bool) -> None:
    """Verify that every required credential and setting is present."""
    formatter = OutputFormatter("json" if json_mode else "human")
    try:
        cfg = _load_config(config_path)
    except ConfigurationError as e:
        formatter.output_error(e.message, e.details)
        raise SystemExit(1)

    missing = cfg.missing_settings()
    if not missing:
        try:
            cfg.validate()
        except ConfigurationError as e:
            formatter.output_error(e.message, e.details)
            raise SystemExit(1)

    formatter.output_missing_settings(missing)
    if missing:
        raise SystemExit(1)


@cli.command()
@click.argument("session_id")
@click.option("--resource-id", help="Resource ID (defaults to the one recorded at start)")
@config_option
@json_option
@verbose_option
@debug_option
def query(
    session_id: str,
    resource_id: str | None,
    config_path: str | None,
    json_mode: bool,
    verbose: bool,
    debug: bool,
) -> None:
    """List the files Agora reports for a recording session."""
    setup_logging(level="DEBUG" if debug else ("INFO" if verbose else "WARNING"))
    formatter = OutputFormatter("json" if json_mode else "human")

    try:
        cfg = _load_config(config_path)
        cfg.validate()
        resource_id = resource_id or SessionRegistry(cfg.registry_path).resource_handle_for(
            session_id
        )
        if not resource_id:
            raise LocatorError(
                f"No resource ID known for SID {session_id}",
                details="Pass --resource-id explicitly.",
            )
        file_list = _agora_client(cfg).query_file_list(resource_id, session_id) or []
        formatter.output_file_list(session_id, file_list)
    except Exception as e:
        _report_error(formatter, e, debug)


@cli.command()
@click.argument("session_id")
@click.option("--resource-id", help="Resource ID (defaults to the one recorded at start)")
@config_option
@json_option
@verbose_option
@debug_option
def relay(
    session_id: str,
    resource_id: str | None,
    config_path: str | None,
    json_mode: bool,
    verbose: bool,
    debug: bool,
) -> None:
    """Locate the MP4 for a finished session and stream it into the recordings bucket."""
    setup_logging(level="DEBUG" if debug else ("INFO" if verbose else "WARNING"))
    formatter = OutputFormatter("json" if json_mode else "human")

    try:
        cfg = _load_config(config_path)
        cfg.validate()
        client = _agora_client(cfg)

        if resource_id:
            file_list = client.query_file_list(resource_id, session_id) or []
            resolved = select_media_file(file_list, session_id)
        else:
            locator = FileLocator(client, registry=SessionRegistry(cfg.registry_path))
            resolved = locator.resolve(session_id, cfg.channel_name, None)

        pipeline = RelayPipeline(
            S3ObjectStore(
                str(cfg.recordings_bucket_name),
                cfg.aws_region_name,
                str(cfg.aws_access_key_id),
                str(cfg.aws_secret_access_key),
            ),
            deadline_seconds=cfg.relay_deadline_seconds,
        )

        if json_mode:
            result = pipeline.relay(resolved)
        else:
            with Progress(
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                DownloadColumn(),
                TransferSpeedColumn(),
            ) as progress:
                task = progress.add_task(f"Relaying {resolved.file_name}", total=None)

                def _update(p: TransferProgress) -> None:
                    progress.update(
                        task, completed=p.bytes_transferred, total=p.total_bytes or None
                    )

                result = pipeline.relay(resolved, on_progress=_update)

        data: dict[str, Any] = {
            "session_id": result.session_id,
            "file_name": result.file_name,
            "path": result.path,
            "bytes_transferred": result.bytes_transferred,
        }
        formatter.output_result(
            data, f"Relayed {result.file_name} to s3://{cfg.recordings_bucket_name}/{result.path}"
        )
    except Exception as e:
        _report_error(formatter, e, debug)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
