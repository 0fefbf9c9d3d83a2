"""CLI interface for the MOVEit Cloud folder sync."""

import logging
import time
from pathlib import Path
from typing import Any, Optional

import click
from rich.progress import Progress, SpinnerColumn, TextColumn

from .api import MoveItClient
from .auth import TokenAuth, TokenManager
from .config import SyncSettings, config
from .exceptions import MoveItError
from .output import OutputFormatter
from .sync import DirectoryWatcher, SyncCoordinator, SyncEngine

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbosity: int, log_file: Optional[Path] = None) -> None:
    """Configure logging for the command line.

    Args:
        verbosity: 0 for warnings only, 1 for info, 2 or more for debug
        log_file: Optional file receiving the same records
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S")
    logging.getLogger("pymoveit").setLevel(level)
    if verbosity < 2:
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def build_engine(
    api_url: str, username: str, password: str, settings: SyncSettings
) -> tuple[SyncEngine, MoveItClient, MoveItClient]:
    """Wire a sync engine to an authenticated API client.

    Returns:
        Tuple of (engine, authenticated client, token client); the caller
        closes both clients
    """
    token_client = MoveItClient(api_url=api_url)
    token_manager = TokenManager(
        token_client,
        username,
        password,
        expiry_tolerance=settings.token_expiry_tolerance_seconds,
    )
    client = MoveItClient(api_url=api_url, auth=TokenAuth(token_manager))
    return SyncEngine(client, settings), client, token_client


def _initialize_with_spinner(engine: SyncEngine, out: OutputFormatter) -> None:
    if out.quiet:
        engine.initialize()
        return
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
    ) as progress:
        task = progress.add_task("Fetching remote folder contents...", total=None)
        engine.initialize()
        progress.update(task, description=f"Found {len(engine)} remote file(s)")


def _resolve_credentials(username: Optional[str]) -> tuple[str, str]:
    username = username or config.username
    if not username:
        username = click.prompt("Enter your MOVEit username")
    password = config.password
    if not password:
        password = click.prompt("Enter your MOVEit password", hide_input=True)
    if not username.strip() or not password.strip():
        raise click.UsageError("Username and password cannot be empty.")
    return username, password


@click.group()
@click.option("--api-url", envvar="MOVEIT_API_URL", help="MOVEit API base URL")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Enable info (-v) or debug (-vv) logging output",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write log records to this file",
)
@click.version_option(package_name="pymoveit")
@click.pass_context
def main(
    ctx: Any,
    api_url: Optional[str],
    quiet: bool,
    verbose: int,
    log_file: Optional[Path],
) -> None:
    """PyMoveIt - Mirror a local folder into your MOVEit Cloud home folder."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["out"] = OutputFormatter(quiet=quiet)
    try:
        setup_logging(verbose, log_file or config.log_file)
    except (OSError, MoveItError) as e:
        raise click.ClickException(f"Cannot set up logging: {e}") from e


@main.command()
@click.option("--api-url", prompt="MOVEit API URL", default=lambda: config.api_url)
@click.option("--username", "-u", prompt="MOVEit username")
@click.option("--password", prompt="MOVEit password", hide_input=True)
@click.option(
    "--watch-path",
    prompt="Local folder to watch",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.pass_context
def init(
    ctx: Any, api_url: str, username: str, password: str, watch_path: Path
) -> None:
    """Initialize the configuration.

    Signs in once to check the credentials, then stores the API URL,
    username and watched folder in ~/.config/pymoveit/config.json. The
    password is not stored.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info("Validating credentials...")
    token_client = MoveItClient(api_url=api_url)
    token_manager = TokenManager(token_client, username, password)
    client = MoveItClient(api_url=api_url, auth=TokenAuth(token_manager))
    try:
        user = client.get_current_user()
        config.save(
            api_url=api_url,
            username=username,
            watch_path=watch_path.expanduser().resolve(),
        )
    except MoveItError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)
    finally:
        client.close()
        token_client.close()

    out.success("✓ Credentials are valid")
    out.print_summary(
        "Initialization Complete",
        [
            ("User", user.username or username),
            ("Home folder", str(user.home_folder_id)),
            ("Config file", str(config.get_config_path())),
        ],
    )


@main.command(name="ls")
@click.option("--username", "-u", help="MOVEit username")
@click.pass_context
def list_files(ctx: Any, username: Optional[str]) -> None:
    """List the files in the MOVEit home folder."""
    out: OutputFormatter = ctx.obj["out"]
    api_url = ctx.obj["api_url"] or config.api_url
    username, password = _resolve_credentials(username)

    try:
        settings = config.get_sync_settings()
        engine, client, token_client = build_engine(api_url, username, password, settings)
    except MoveItError as e:
        out.error(str(e))
        ctx.exit(1)

    try:
        _initialize_with_spinner(engine, out)
        out.print_files(engine.tracked_files())
    except MoveItError as e:
        out.error(f"Listing failed: {e}")
        ctx.exit(1)
    finally:
        client.close()
        token_client.close()


@main.command()
@click.argument(
    "path",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--username", "-u", help="MOVEit username")
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of parallel upload/delete workers",
)
@click.pass_context
def watch(ctx: Any, path: Optional[Path], username: Optional[str], workers: int) -> None:
    """Mirror new and deleted files in PATH to the MOVEit home folder.

    Runs until interrupted with Ctrl+C.
    """
    out: OutputFormatter = ctx.obj["out"]
    api_url = ctx.obj["api_url"] or config.api_url
    path = path or config.watch_path
    if path is None:
        raise click.UsageError("No folder to watch. Pass PATH or run 'pymoveit init'.")
    username, password = _resolve_credentials(username)

    try:
        settings = config.get_sync_settings()
        engine, client, token_client = build_engine(api_url, username, password, settings)
    except MoveItError as e:
        out.error(str(e))
        ctx.exit(1)

    coordinator = SyncCoordinator(engine, max_workers=workers)
    watcher: Optional[DirectoryWatcher] = None
    try:
        _initialize_with_spinner(engine, out)
        out.success(f"Tracking {len(engine)} remote file(s)")

        coordinator.start()
        watcher = DirectoryWatcher(path, coordinator)
        watcher.start()
        out.info(f"Monitoring {watcher.root}. Press Ctrl+C to quit.")

        while True:
            time.sleep(1)
            if not watcher.is_alive():
                coordinator.notify_error(RuntimeError("File watcher stopped unexpectedly"))
                break
    except KeyboardInterrupt:
        out.info("Stopping...")
    except (MoveItError, ValueError) as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        if watcher is not None:
            watcher.stop()
        coordinator.stop()
        client.close()
        token_client.close()
