"""CLI interface for roomsync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import DriveClient
from .blobstore import LocalBlobStore
from .config import config
from .exceptions import MirrorStoreError, RoomSyncAPIError, SyncError
from .output import OutputFormatter
from .store import JsonMirrorStore
from .tree import RemoteTreeClient
from .utils import format_timestamp

logger = logging.getLogger(__name__)


def require_access_token(ctx: Any, out: OutputFormatter) -> str:
    """Return the access token from the command line or config, or exit."""
    access_token = ctx.obj.get("access_token") or config.access_token
    if not access_token:
        out.error("Access token not configured.")
        out.info("Run 'roomsync init' to configure your access token")
        ctx.exit(1)
    return access_token


def open_stores(data_dir: Optional[Path] = None) -> tuple[JsonMirrorStore, LocalBlobStore]:
    """Open the mirror store and blob store under the data directory."""
    data_dir = data_dir or config.get_data_dir()
    return JsonMirrorStore(data_dir), LocalBlobStore(data_dir / "blobs")


@click.group()
@click.option(
    "--access-token",
    "-t",
    envvar="ROOMSYNC_ACCESS_TOKEN",
    help="OAuth access token for the remote drive",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="roomsync")
@click.pass_context
def main(
    ctx: Any,
    access_token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """roomsync - Mirror remote drive folders into a local data room."""
    ctx.ensure_object(dict)
    ctx.obj["access_token"] = access_token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("roomsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--access-token",
    "-t",
    prompt="Enter your access token",
    hide_input=True,
    help="OAuth access token for the remote drive",
)
@click.pass_context
def init(ctx: Any, access_token: str) -> None:
    """Initialize roomsync configuration.

    Stores your access token in ~/.config/roomsync/config for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info("Validating access token...")
    try:
        with DriveClient(access_token=access_token) as client:
            about = client.get_about()
        user = about.get("user") if isinstance(about, dict) else None
        if user:
            out.success(f"✓ Token is valid ({user.get('emailAddress', 'unknown user')})")
        else:
            out.warning("Token accepted but no user information was returned")
    except RoomSyncAPIError as e:
        out.error(f"Access token validation failed: {e}")
        if not click.confirm("Save access token anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)

    try:
        config.save_access_token(access_token)
    except OSError as e:
        out.error(f"Failed to save configuration: {e}")
        ctx.exit(1)

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(config.get_config_path())),
            ("Data dir", str(config.get_data_dir())),
        ],
    )


@main.command()
@click.argument("parent_id", required=False)
@click.pass_context
def folders(ctx: Any, parent_id: Optional[str]) -> None:
    """List remote folders.

    PARENT_ID: Only list folders directly inside this remote folder

    Use the listed IDs as REMOTE_FOLDER_ID for 'roomsync sync'.
    """
    out: OutputFormatter = ctx.obj["out"]
    access_token = require_access_token(ctx, out)

    try:
        with DriveClient(access_token=access_token) as client:
            remote_folders = RemoteTreeClient(client).list_folders(parent_id)
    except RoomSyncAPIError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(
            [
                {"id": f.id, "name": f.name, "parents": f.parents}
                for f in remote_folders
            ]
        )
        return

    if not remote_folders:
        out.warning("No folders found")
        return

    out.output_table(
        [
            {"id": f.id, "name": f.name, "parent": f.parent_id or "-"}
            for f in remote_folders
        ],
        ["id", "name", "parent"],
        {"id": "ID", "name": "Name", "parent": "Parent"},
    )


@main.command()
@click.argument("remote_folder_id", required=False)
@click.option("--scope", "-s", type=int, help="Local sync scope (data room) ID")
@click.option(
    "--config-file",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with one or more sync configurations",
)
@click.option(
    "--no-subfolders", is_flag=True, help="Only sync files directly in the root folder"
)
@click.option(
    "--include",
    "include_types",
    multiple=True,
    help="Only sync these extensions or types (repeatable, e.g. -i pdf -i xls)",
)
@click.option(
    "--exclude",
    "exclude_types",
    multiple=True,
    help="Never sync these extensions or types (repeatable)",
)
@click.option(
    "--max-size-mb",
    type=float,
    default=None,
    help="Skip files larger than this many MB (default: 100)",
)
@click.option(
    "--destination-folder",
    type=int,
    default=None,
    help="Local folder ID that receives root-level items",
)
@click.option(
    "--max-depth",
    type=int,
    default=None,
    help="Maximum remote folder depth to descend (default: 10)",
)
@click.option(
    "--workers",
    "-j",
    type=int,
    default=None,
    help="Number of parallel transfers (default: 4)",
)
@click.pass_context
def sync(
    ctx: Any,
    remote_folder_id: Optional[str],
    scope: Optional[int],
    config_file: Optional[Path],
    no_subfolders: bool,
    include_types: tuple[str, ...],
    exclude_types: tuple[str, ...],
    max_size_mb: Optional[float],
    destination_folder: Optional[int],
    max_depth: Optional[int],
    workers: Optional[int],
) -> None:
    """Mirror a remote folder into a local data room.

    REMOTE_FOLDER_ID: Remote folder to mirror (see 'roomsync folders')

    Files are only ever added or refreshed; nothing is deleted locally.
    Running the same sync twice without remote changes is a no-op.

    Examples:
        roomsync sync 1AbCdEf --scope 3
        roomsync sync 1AbCdEf -s 3 --include pdf --include xls
        roomsync sync 1AbCdEf -s 3 --no-subfolders --max-size-mb 25
        roomsync sync --config-file rooms.json
    """
    from .sync import (
        SyncConfig,
        SyncConfigError,
        SyncEngine,
        load_sync_configs_from_json,
        truncate_warnings,
    )

    out: OutputFormatter = ctx.obj["out"]

    try:
        if config_file is not None:
            if remote_folder_id or scope is not None:
                out.error("Cannot combine --config-file with REMOTE_FOLDER_ID/--scope")
                ctx.exit(1)
            sync_configs = load_sync_configs_from_json(config_file)
        else:
            if not remote_folder_id or scope is None:
                out.error("REMOTE_FOLDER_ID and --scope are required without --config-file")
                ctx.exit(1)
            options: dict[str, Any] = {
                "scope_id": scope,
                "remote_folder_id": remote_folder_id,
                "sync_subfolders": not no_subfolders,
                "include_file_types": list(include_types),
                "exclude_file_types": list(exclude_types),
                "destination_folder_id": destination_folder,
            }
            if max_size_mb is not None:
                options["max_file_size_mb"] = max_size_mb
            if max_depth is not None:
                options["max_depth"] = max_depth
            if workers is not None:
                options["max_workers"] = workers
            sync_configs = [SyncConfig(**options)]
    except SyncConfigError as e:
        out.error(f"Invalid sync configuration: {e}")
        ctx.exit(1)
        return

    access_token = require_access_token(ctx, out)

    try:
        store, blob_store = open_stores()
    except MirrorStoreError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    engine_out = OutputFormatter(
        json_output=out.json_output, quiet=out.quiet or out.json_output
    )
    results = []
    failed = False
    cancelled = False

    with DriveClient(access_token=access_token) as client:
        engine = SyncEngine(RemoteTreeClient(client), store, blob_store, engine_out)
        for sync_config in sync_configs:
            try:
                result = engine.run_sync(sync_config)
            except SyncError as e:
                out.error(f"Scope {sync_config.scope_id}: {e}")
                failed = True
                continue
            except MirrorStoreError as e:
                out.error(f"Scope {sync_config.scope_id}: mirror store error: {e}")
                failed = True
                continue

            results.append(result)
            if not out.json_output:
                shown, overflow = truncate_warnings(result.warnings)
                for warning in shown:
                    out.warning(warning)
                if overflow:
                    out.warning(f"... and {overflow} more")
            if result.cancelled:
                cancelled = True
                break

    if out.json_output:
        out.output_json([r.to_dict() for r in results])

    if cancelled:
        out.warning("Sync cancelled by user")
        ctx.exit(130)
    if failed:
        ctx.exit(1)


@main.command()
@click.argument("scope", type=int)
@click.option(
    "--config-file",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON sync configuration file; shows the settings for SCOPE",
)
@click.pass_context
def status(ctx: Any, scope: int, config_file: Optional[Path]) -> None:
    """Show when a data room was last synced and what happened.

    SCOPE: Local sync scope (data room) ID
    """
    from .sync import (
        SyncConfigError,
        SyncReporter,
        load_sync_configs_from_json,
        truncate_warnings,
    )

    out: OutputFormatter = ctx.obj["out"]

    scope_config = None
    if config_file is not None:
        try:
            sync_configs = load_sync_configs_from_json(config_file)
        except SyncConfigError as e:
            out.error(f"Invalid sync configuration: {e}")
            ctx.exit(1)
            return
        scope_config = next((c for c in sync_configs if c.scope_id == scope), None)
        if scope_config is None:
            out.warning(f"No configuration for scope {scope} in {config_file}")

    try:
        store, _ = open_stores()
        sync_status = SyncReporter(store).get_status(scope, config=scope_config)
    except MirrorStoreError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(sync_status.to_dict())
        return

    if scope_config is not None:
        out.print_summary(
            f"Sync settings for scope {scope}",
            [
                ("Remote folder", scope_config.remote_folder_id),
                ("Subfolders", "yes" if scope_config.sync_subfolders else "no"),
                ("Include", ", ".join(scope_config.include_file_types) or "all"),
                ("Exclude", ", ".join(scope_config.exclude_file_types) or "-"),
                (
                    "Max size",
                    f"{scope_config.max_file_size_mb:g}MB"
                    if scope_config.max_file_size_mb is not None
                    else "no limit",
                ),
            ],
        )

    last_run = sync_status.last_run
    if last_run is None:
        out.print(f"Scope {scope} has never been synced")
        out.print(f"  Documents: {sync_status.document_count}")
        return

    items = [
        ("Last synced", format_timestamp(last_run.started_at) or "-"),
        ("Documents", str(sync_status.document_count)),
        ("Scanned", str(last_run.files_scanned)),
        ("Added", str(last_run.files_created)),
        ("Updated", str(last_run.files_updated)),
        ("Skipped", str(last_run.files_skipped)),
        ("Folders created", str(last_run.folders_created)),
        ("Duration", f"{last_run.duration_seconds:.1f}s"),
    ]
    if last_run.cancelled:
        items.append(("Cancelled", "yes"))
    out.print_summary(f"Sync status for scope {scope}", items)

    if last_run.warnings:
        shown, overflow = truncate_warnings(last_run.warnings)
        out.print("")
        out.print(f"Warnings ({len(last_run.warnings)}):")
        for warning in shown:
            out.print(f"  - {warning}")
        if overflow:
            out.print(f"  ... and {overflow} more")


@main.command()
@click.argument("scope", type=int)
@click.option(
    "--limit",
    "-n",
    type=int,
    default=10,
    help="Number of runs to show (default: 10)",
)
@click.pass_context
def history(ctx: Any, scope: int, limit: int) -> None:
    """List past sync runs for a data room, newest first.

    SCOPE: Local sync scope (data room) ID
    """
    from .sync import SyncReporter

    out: OutputFormatter = ctx.obj["out"]

    if limit < 1:
        out.error("Limit must be at least 1")
        ctx.exit(1)

    try:
        store, _ = open_stores()
        runs = SyncReporter(store).get_history(scope, limit=limit)
    except MirrorStoreError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json([run.to_dict() for run in runs])
        return

    if not runs:
        out.warning(f"No sync runs recorded for scope {scope}")
        return

    out.output_table(
        [
            {
                "started_at": format_timestamp(run.started_at),
                "scanned": run.files_scanned,
                "created": run.files_created,
                "updated": run.files_updated,
                "skipped": run.files_skipped,
                "folders": run.folders_created,
                "warnings": len(run.warnings),
            }
            for run in runs
        ],
        ["started_at", "scanned", "created", "updated", "skipped", "folders", "warnings"],
        {
            "started_at": "Started",
            "scanned": "Scanned",
            "created": "Added",
            "updated": "Updated",
            "skipped": "Skipped",
            "folders": "Folders",
            "warnings": "Warnings",
        },
    )


if __name__ == "__main__":
    main()
