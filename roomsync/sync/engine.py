"""Core sync engine that mirrors a remote folder tree into a data room."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional

from rich.progress import Progress, SpinnerColumn, TextColumn

from ..blobstore import BlobStore
from ..exceptions import RoomSyncError, SyncError, SyncInProgressError
from ..models import MirrorDocument, RemoteFile, SyncRunResult
from ..output import OutputFormatter
from ..store import MirrorStore
from ..tree import RemoteTree, RemoteTreeClient
from ..utils import utcnow
from .comparator import FileComparator, SyncAction
from .config import SyncConfig
from .operations import SyncOperations, make_run_stamp
from .report import FileOutcome, SyncReporter

logger = logging.getLogger(__name__)


class SyncEngine:
    """Orchestrates one-directional sync from the remote tree to the mirror.

    A run is a single pass with no persisted intermediate state: load the
    mirror, read the remote tree, reconcile folders, reconcile files, then
    record the summary. Re-running after a crash is safe because unchanged
    files classify as skips.
    """

    def __init__(
        self,
        tree: RemoteTreeClient,
        store: MirrorStore,
        blob_store: BlobStore,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            tree: Remote tree client
            store: Local mirror store
            blob_store: Destination for file content
            output: Output formatter for displaying progress/status
        """
        self.tree = tree
        self.store = store
        self.output = output or OutputFormatter(quiet=True)
        self.operations = SyncOperations(tree, blob_store)
        self.reporter = SyncReporter(store)
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation; files not yet started are skipped."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run_sync(self, config: SyncConfig) -> SyncRunResult:
        """Run a sync for one scope.

        Args:
            config: Sync configuration for the scope

        Returns:
            Recorded SyncRunResult

        Raises:
            SyncInProgressError: If another run holds the scope
            SyncError: If the remote tree cannot be read

        Examples:
            >>> engine = SyncEngine(tree, store, blob_store)
            >>> result = engine.run_sync(SyncConfig(scope_id=1, remote_folder_id="1AbC"))
            >>> print(f"Created {result.files_created} document(s)")
        """
        if not self.store.begin_run(config.scope_id):
            raise SyncInProgressError(
                f"A sync is already running for scope {config.scope_id}"
            )
        self._cancel_event.clear()
        try:
            return self._run(config)
        finally:
            self.store.end_run(config.scope_id)

    def _run(self, config: SyncConfig) -> SyncRunResult:
        started_at = utcnow()
        start = time.monotonic()
        run_stamp = make_run_stamp()
        scope_id = config.scope_id

        if not self.output.quiet:
            self.output.info(f"Syncing: {config.remote_folder_id} -> scope {scope_id}")

        # Step 1: Load existing mirror state
        existing_documents: dict[str, MirrorDocument] = {}
        for document in self.store.list_documents(scope_id):
            if document.remote_id:
                existing_documents[document.remote_id] = document

        folder_mapping: dict[str, int] = {}
        for folder in self.store.list_folders(scope_id):
            if folder.remote_id:
                folder_mapping[folder.remote_id] = folder.id

        logger.debug(
            "Loaded %d mirrored document(s) and %d mapped folder(s) for scope %s",
            len(existing_documents),
            len(folder_mapping),
            scope_id,
        )

        # Step 2: Read the remote tree; any failure here is fatal
        remote_tree = self._read_tree(config)

        # Step 3: Folders first, file placement depends on the full mapping
        folders_created = 0
        if config.sync_subfolders:
            folders_created = self._reconcile_folders(config, remote_tree, folder_mapping)

        # Step 4: Files
        outcomes = self._reconcile_files(
            config, remote_tree.files, existing_documents, folder_mapping, run_stamp
        )

        # Step 5: Report
        result = self.reporter.summarize(
            scope_id=scope_id,
            started_at=started_at,
            outcomes=outcomes,
            folders_created=folders_created,
            duration_seconds=time.monotonic() - start,
            cancelled=self.cancelled,
        )
        self.reporter.record(result)

        if not self.output.quiet:
            self._display_summary(result)
        return result

    def _read_tree(self, config: SyncConfig) -> RemoteTree:
        """Walk the remote tree, converting failures into SyncError."""
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                transient=True,
                disable=self.output.quiet,
            ) as progress:
                task = progress.add_task("Scanning remote folder...", total=None)
                remote_tree = self.tree.walk(
                    config.remote_folder_id,
                    recursive=config.sync_subfolders,
                    max_depth=config.max_depth,
                    on_folder=lambda folder: progress.update(
                        task, description=f"Scanning {folder.name}..."
                    ),
                )
        except RoomSyncError as e:
            logger.error(
                "Failed to read remote tree %s for scope %s: %s",
                config.remote_folder_id,
                config.scope_id,
                e,
            )
            raise SyncError(f"Sync failed: {e}") from e
        except Exception as e:
            logger.error(
                "Unexpected error reading remote tree %s for scope %s: %s",
                config.remote_folder_id,
                config.scope_id,
                e,
                exc_info=True,
            )
            raise SyncError(f"Sync failed: unexpected error: {e}") from e

        logger.debug(
            "Read remote tree %r (%s) for scope %s",
            remote_tree.root_name,
            config.remote_folder_id,
            config.scope_id,
        )
        if remote_tree.depth_limited:
            logger.warning(
                "Remote tree %s is deeper than max_depth=%d; deeper folders skipped",
                config.remote_folder_id,
                config.max_depth,
            )
        return remote_tree

    def _reconcile_folders(
        self,
        config: SyncConfig,
        remote_tree: RemoteTree,
        folder_mapping: dict[str, int],
    ) -> int:
        """Create mirror folders for unmapped remote folders.

        Folders arrive in pre-order, so a parent is always mapped before its
        children. Updates ``folder_mapping`` in place.

        Returns:
            Number of folders created
        """
        created = 0
        for remote_folder in remote_tree.folders:
            if remote_folder.id in folder_mapping:
                continue

            parent_id = config.destination_folder_id
            remote_parent = remote_folder.parent_id
            if remote_parent is not None and remote_parent in folder_mapping:
                parent_id = folder_mapping[remote_parent]

            mirror_folder = self.store.create_folder(
                scope_id=config.scope_id,
                name=remote_folder.name,
                parent_id=parent_id,
                remote_id=remote_folder.id,
            )
            folder_mapping[remote_folder.id] = mirror_folder.id
            created += 1
            logger.debug(
                "Created folder %s (%s) under %s",
                remote_folder.name,
                mirror_folder.id,
                parent_id,
            )
        return created

    def _resolve_folder(
        self, remote_file: RemoteFile, config: SyncConfig, folder_mapping: dict[str, int]
    ) -> Optional[int]:
        """Local folder for a file: first mapped parent, else destination root."""
        for parent in remote_file.parents:
            if parent in folder_mapping:
                return folder_mapping[parent]
        return config.destination_folder_id

    def _reconcile_files(
        self,
        config: SyncConfig,
        remote_files: list[RemoteFile],
        existing_documents: dict[str, MirrorDocument],
        folder_mapping: dict[str, int],
        run_stamp: str,
    ) -> list[FileOutcome]:
        """Process every remote file, in parallel when configured.

        Returns:
            One outcome per file, in the order of ``remote_files``
        """
        comparator = FileComparator(
            include_file_types=config.include_file_types,
            exclude_file_types=config.exclude_file_types,
            max_file_size_mb=config.max_file_size_mb,
        )

        def process(remote_file: RemoteFile) -> FileOutcome:
            if self._cancel_event.is_set():
                return FileOutcome.skipped(remote_file.name, "Run cancelled")
            return self._process_file(
                remote_file,
                config,
                comparator,
                existing_documents.get(remote_file.id),
                folder_mapping,
                run_stamp,
            )

        if config.max_workers <= 1 or len(remote_files) <= 1:
            sequential: list[FileOutcome] = []
            for remote_file in remote_files:
                try:
                    sequential.append(process(remote_file))
                except KeyboardInterrupt:
                    logger.warning("Sync interrupted, skipping remaining files")
                    self.cancel()
                    sequential.append(
                        FileOutcome.skipped(remote_file.name, "Run cancelled")
                    )
            return sequential

        logger.debug(
            f"Processing {len(remote_files)} file(s) with {config.max_workers} workers"
        )
        outcomes: list[Optional[FileOutcome]] = [None] * len(remote_files)
        with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
            futures = {
                executor.submit(process, remote_file): index
                for index, remote_file in enumerate(remote_files)
            }
            try:
                for future in as_completed(futures):
                    index = futures[future]
                    outcomes[index] = future.result()
            except KeyboardInterrupt:
                # Pending files see the cancel flag and return immediately
                logger.warning("Sync interrupted, skipping remaining files")
                self.cancel()
                for future, index in futures.items():
                    outcomes[index] = future.result()

        return [outcome for outcome in outcomes if outcome is not None]

    def _process_file(
        self,
        remote_file: RemoteFile,
        config: SyncConfig,
        comparator: FileComparator,
        existing_document: Optional[MirrorDocument],
        folder_mapping: dict[str, int],
        run_stamp: str,
    ) -> FileOutcome:
        """Classify and apply one remote file. Never raises."""
        name = remote_file.name
        start = time.time()
        try:
            folder_id = self._resolve_folder(remote_file, config, folder_mapping)
            decision = comparator.classify(remote_file, existing_document)

            if decision.action == SyncAction.SKIP:
                logger.debug(f"Skipping {name}: {decision.reason}")
                return FileOutcome.skipped(name, decision.reason, decision.warning)

            blob = self.operations.transfer(remote_file, config.scope_id, run_stamp)

            if decision.action == SyncAction.CREATE:
                if blob is None:
                    return FileOutcome.failed(name, f'Failed to download "{name}"')
                self.store.create_document(
                    scope_id=config.scope_id,
                    name=name,
                    folder_id=folder_id,
                    file_type=remote_file.simple_type,
                    mime_type=blob.content_type,
                    size=remote_file.size if remote_file.size is not None else blob.size,
                    storage_url=blob.url,
                    storage_key=blob.key,
                    remote_id=remote_file.id,
                    remote_modified_time=remote_file.modified_time,
                    web_view_link=remote_file.web_view_link,
                    thumbnail_url=remote_file.thumbnail_link,
                )
                logger.debug(f"Created {name} in {time.time() - start:.2f}s")
                return FileOutcome.created(name)

            # SyncAction.UPDATE
            if blob is None or existing_document is None:
                return FileOutcome.failed(name, f'Failed to update "{name}"')
            self.store.update_document(
                existing_document.id,
                name=name,
                folder_id=folder_id,
                file_type=remote_file.simple_type,
                mime_type=blob.content_type,
                size=remote_file.size if remote_file.size is not None else blob.size,
                storage_url=blob.url,
                storage_key=blob.key,
                remote_modified_time=remote_file.modified_time,
                web_view_link=remote_file.web_view_link,
                thumbnail_url=remote_file.thumbnail_link,
            )
            logger.debug(f"Updated {name} in {time.time() - start:.2f}s")
            return FileOutcome.updated(name)

        except Exception as e:
            logger.warning(f"Error processing {name}: {e}")
            return FileOutcome.failed(name, f'Error processing "{name}": {e}')

    def _display_summary(self, result: SyncRunResult) -> None:
        """Display sync summary."""
        self.output.print("")
        self.output.info("Sync complete:")
        self.output.info(f"  Scanned: {result.files_scanned} file(s)")
        if result.folders_created > 0:
            self.output.info(f"  + Folders created: {result.folders_created}")
        if result.files_created > 0:
            self.output.info(f"  + Added: {result.files_created} file(s)")
        if result.files_updated > 0:
            self.output.info(f"  ~ Updated: {result.files_updated} file(s)")
        if result.files_skipped > 0:
            self.output.info(f"  = Skipped: {result.files_skipped} file(s)")
        if result.cancelled:
            self.output.warning("Sync was cancelled before all files were processed")
        self.output.info(f"  Duration: {result.duration_seconds:.1f}s")
