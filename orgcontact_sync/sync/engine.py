"""
Sync engine for directory-to-contacts synchronization.

Orchestrates a run over all target users:
- loads the desired directory set and the target users once
- reconciles and applies each user's contact list in turn
- isolates per-user failures so one mailbox cannot stop the run
- cools down between users after throttling was observed

Also runs the cleanup-only policies (duplicate/category removal and
folder deletion) over the same target loop.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from orgcontact_sync.api.batch import BatchExecutor
from orgcontact_sync.api.graph_api import GraphAPIError, GraphClient
from orgcontact_sync.directory.loader import DirectoryLoader
from orgcontact_sync.sync.cleanup import find_folder, plan_cleanup
from orgcontact_sync.sync.contact import DirectoryEntry, TargetUser
from orgcontact_sync.sync.operations import (
    ContactOperation,
    DeleteContact,
    OperationKind,
    OperationResult,
)
from orgcontact_sync.sync.reconciler import reconcile

if TYPE_CHECKING:
    from orgcontact_sync.config.settings import SyncSettings

logger = logging.getLogger(__name__)

R = TypeVar("R", "ReconciliationResult", "FolderDeletionResult")


@dataclass
class ReconciliationResult:
    """
    Per-user tally of a sync or cleanup.

    In dry-run mode the counts are planned operations, not applied ones.
    """

    user: str
    created: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
    failed: int = 0
    error: str | None = None

    _FIELDS = {
        OperationKind.CREATE: "created",
        OperationKind.UPDATE: "updated",
        OperationKind.DELETE: "deleted",
    }

    def record(self, results: list[OperationResult]) -> None:
        """Count executed operations by kind; failures are counted once."""
        for result in results:
            if result.success:
                name = self._FIELDS[result.kind]
                setattr(self, name, getattr(self, name) + 1)
            else:
                self.failed += 1

    def record_planned(self, operations: list[ContactOperation]) -> None:
        """Count operations that a dry run would have executed."""
        for operation in operations:
            name = self._FIELDS[operation.kind]
            setattr(self, name, getattr(self, name) + 1)

    def describe(self) -> str:
        if self.error:
            return f"{self.user}: FAILED ({self.error})"
        text = (
            f"{self.user}: created {self.created}, updated {self.updated}, "
            f"deleted {self.deleted}, unchanged {self.unchanged}"
        )
        if self.failed:
            text += f", failed {self.failed}"
        return text


@dataclass
class FolderDeletionResult:
    """Outcome of deleting a named contact folder for one user."""

    user: str
    folder_found: bool = False
    contact_count: int = 0
    deleted: bool = False
    error: str | None = None

    def describe(self) -> str:
        if self.error:
            return f"{self.user}: FAILED ({self.error})"
        if not self.folder_found:
            return f"{self.user}: folder not found"
        action = "deleted" if self.deleted else "would delete"
        return f"{self.user}: {action} folder with {self.contact_count} contacts"


@dataclass
class RunSummary:
    """Aggregated results of one run."""

    results: list[ReconciliationResult] = field(default_factory=list)
    dry_run: bool = False
    title: str = "Sync"

    @property
    def users_processed(self) -> int:
        return len(self.results)

    @property
    def users_failed(self) -> int:
        return sum(1 for r in self.results if r.error)

    @property
    def created(self) -> int:
        return sum(r.created for r in self.results)

    @property
    def updated(self) -> int:
        return sum(r.updated for r in self.results)

    @property
    def deleted(self) -> int:
        return sum(r.deleted for r in self.results)

    @property
    def unchanged(self) -> int:
        return sum(r.unchanged for r in self.results)

    @property
    def failed_operations(self) -> int:
        return sum(r.failed for r in self.results)

    @property
    def errors(self) -> int:
        """Failed users plus failed individual operations."""
        return self.users_failed + self.failed_operations

    def summary(self) -> str:
        """Generate a human-readable summary of the run."""
        prefix = "[DRY RUN] " if self.dry_run else ""
        lines = [
            f"{prefix}{self.title} Summary:",
            f"  Users processed: {self.users_processed}",
            f"  Created: {self.created}",
            f"  Updated: {self.updated}",
            f"  Deleted: {self.deleted}",
            f"  Unchanged: {self.unchanged}",
            f"  Errors: {self.errors}",
        ]
        if self.users_failed:
            lines.append(f"  Users failed: {self.users_failed}")
        if self.failed_operations:
            lines.append(f"  Failed operations: {self.failed_operations}")
        return "\n".join(lines)


@dataclass
class FolderDeletionSummary:
    """Aggregated results of a folder deletion run."""

    folder_name: str
    results: list[FolderDeletionResult] = field(default_factory=list)
    dry_run: bool = False

    @property
    def folders_found(self) -> int:
        return sum(1 for r in self.results if r.folder_found)

    @property
    def folders_deleted(self) -> int:
        return sum(1 for r in self.results if r.deleted)

    @property
    def contacts_removed(self) -> int:
        return sum(r.contact_count for r in self.results if r.folder_found)

    @property
    def errors(self) -> int:
        return sum(1 for r in self.results if r.error)

    def summary(self) -> str:
        prefix = "[DRY RUN] " if self.dry_run else ""
        return "\n".join(
            [
                f"{prefix}Folder Deletion Summary ('{self.folder_name}'):",
                f"  Users processed: {len(self.results)}",
                f"  Folders found: {self.folders_found}",
                f"  Folders deleted: {self.folders_deleted}",
                f"  Contacts in deleted folders: {self.contacts_removed}",
                f"  Errors: {self.errors}",
            ]
        )


class SyncEngine:
    """
    Directory contact sync engine.

    Usage:
        session = RunSession(tokens=TokenCache(provider))
        client = GraphClient(session)
        engine = SyncEngine(client, settings)

        summary = engine.run_sync()
        print(summary.summary())

        # Cleanup-only runs
        engine.run_cleanup(remove_category="Old Directory")
        engine.run_folder_deletion("Company Directory")
    """

    def __init__(
        self,
        client: GraphClient,
        settings: SyncSettings,
        loader: DirectoryLoader | None = None,
        executor: BatchExecutor | None = None,
    ):
        """
        Initialize the engine.

        Args:
            client: Graph client bound to this run's session
            settings: Resolved run settings
            loader: Snapshot loader (built from settings if None)
            executor: Operation executor (built from settings if None)
        """
        self.client = client
        self.settings = settings
        self.loader = loader or DirectoryLoader(client, settings.directory_filter())
        self.executor = executor or BatchExecutor(
            client,
            batch_size=settings.batch_size,
            operation_delay=settings.operation_delay,
        )

    @property
    def dry_run(self) -> bool:
        return self.settings.dry_run

    # ========== Target loop ==========

    def _for_each_target(
        self,
        targets: list[TargetUser],
        handler: Callable[[TargetUser], R],
        on_error: Callable[[TargetUser, Exception], R],
    ) -> list[R]:
        """
        Run ``handler`` for every target sequentially.

        GraphAPIError raised for one user is logged and converted with
        ``on_error``; anything else aborts the run.
        """
        session = self.client.session
        results: list[R] = []
        total = len(targets)

        for index, target in enumerate(targets, 1):
            session.reset_throttled()
            logger.info(f"[{index}/{total}] Processing {target.user_principal_name}")

            try:
                result = handler(target)
            except GraphAPIError as e:
                logger.error(f"Failed to process {target.user_principal_name}: {e}")
                result = on_error(target, e)

            logger.info(result.describe())
            results.append(result)

            if session.throttled and index < total:
                logger.warning(
                    f"Throttling observed, pausing {self.settings.user_cooldown:.0f}s "
                    f"before next user"
                )
                time.sleep(self.settings.user_cooldown)

        return results

    def _load_targets(
        self, target_group_id: str | None, only_users: list[str] | None
    ) -> list[TargetUser]:
        group_id = target_group_id or self.settings.target_group_id
        return self.loader.load_targets(group_id, only_users)

    def _apply(
        self, operations: list[ContactOperation], result: ReconciliationResult
    ) -> None:
        """Execute operations, or only report them in dry-run mode."""
        if not operations:
            return

        if self.dry_run:
            for operation in operations:
                logger.info(f"[DRY RUN] Would {operation.describe()}")
            result.record_planned(operations)
            return

        result.record(self.executor.execute_all(operations))

    # ========== Sync ==========

    def run_sync(
        self,
        source_group_id: str | None = None,
        target_group_id: str | None = None,
        only_users: list[str] | None = None,
    ) -> RunSummary:
        """
        Synchronize the directory into every target user's contacts.

        Setup failures (token, desired set, target set) propagate.

        Args:
            source_group_id: Override the configured source group
            target_group_id: Override the configured target group
            only_users: Restrict the run to these principal names

        Returns:
            RunSummary with one result per target user
        """
        logger.info("Starting directory contact sync")
        if self.dry_run:
            logger.info("[DRY RUN] No changes will be made")
        if self.settings.max_concurrent_users > 1:
            logger.info(
                f"max_concurrent_users={self.settings.max_concurrent_users} is "
                f"advisory; users are processed one at a time"
            )

        desired = self.loader.load_entries(
            source_group_id or self.settings.source_group_id
        )
        targets = self._load_targets(target_group_id, only_users)

        results = self._for_each_target(
            targets,
            lambda target: self.sync_user(target, desired),
            lambda target, e: ReconciliationResult(
                user=target.user_principal_name, error=str(e)
            ),
        )

        summary = RunSummary(results=results, dry_run=self.dry_run)
        logger.info(
            f"Sync complete: created {summary.created}, updated {summary.updated}, "
            f"deleted {summary.deleted}, unchanged {summary.unchanged}, "
            f"errors {summary.errors}"
        )
        return summary

    def sync_user(
        self, target: TargetUser, desired: list[DirectoryEntry]
    ) -> ReconciliationResult:
        """
        Reconcile and apply one user's contact list.

        Raises:
            GraphAPIError: If the user's contacts cannot be read
        """
        result = ReconciliationResult(user=target.user_principal_name)

        folder_id: str | None = None
        folder_pending = False
        if self.settings.contact_folder:
            folder_id = self._ensure_folder(target, self.settings.contact_folder)
            folder_pending = folder_id is None

        if folder_pending:
            # Dry run with a folder that does not exist yet
            existing = []
        else:
            existing = self.loader.load_contacts(target.id, folder_id)
        logger.debug(f"{target.user_principal_name} has {len(existing)} contacts")

        plan = reconcile(
            existing,
            desired,
            self.settings.reconcile_policy(),
            target=target,
            folder_id=folder_id,
        )
        if plan.skipped_no_email:
            logger.info(
                f"Skipped {plan.skipped_no_email} directory entries without an "
                f"email address"
            )
        result.unchanged = plan.unchanged
        self._apply(plan.operations, result)
        return result

    def _ensure_folder(self, target: TargetUser, name: str) -> str | None:
        """
        Find the named contact folder, creating it when missing.

        Returns:
            Folder id, or None in dry-run mode when the folder does not exist
        """
        folder = find_folder(self.loader.load_folders(target.id), name)
        if folder is not None:
            return folder.id

        if self.dry_run:
            logger.info(f"[DRY RUN] Would create contact folder '{name}'")
            return None

        created = self.client.execute(
            "POST",
            f"/users/{target.id}/contactFolders",
            body={"displayName": name},
        )
        logger.info(f"Created contact folder '{name}' for {target.user_principal_name}")
        return created["id"]

    # ========== Cleanup ==========

    def run_cleanup(
        self,
        preserve_category: str | None = None,
        remove_category: str | None = None,
        match_names: bool | None = None,
        target_group_id: str | None = None,
        only_users: list[str] | None = None,
    ) -> RunSummary:
        """
        Remove duplicate and category-marked contacts for every target.

        Args:
            preserve_category: Preferred survivor category
                (default: settings.cleanup_preserve_category)
            remove_category: Category always removed
                (default: settings.cleanup_remove_category)
            match_names: Group duplicates by display name too
                (default: settings.cleanup_match_names)
            target_group_id: Override the configured target group
            only_users: Restrict the run to these principal names
        """
        preserve = preserve_category or self.settings.cleanup_preserve_category
        remove = remove_category or self.settings.cleanup_remove_category
        by_name = (
            self.settings.cleanup_match_names if match_names is None else match_names
        )

        logger.info(
            f"Starting contact cleanup (preserve={preserve!r}, remove={remove!r}, "
            f"match_names={by_name})"
        )
        targets = self._load_targets(target_group_id, only_users)

        def clean(target: TargetUser) -> ReconciliationResult:
            result = ReconciliationResult(user=target.user_principal_name)
            existing = self.loader.load_contacts(target.id)
            doomed = plan_cleanup(existing, preserve, remove, match_names=by_name)
            result.unchanged = len(existing) - len(doomed)
            operations: list[ContactOperation] = [
                DeleteContact(target.id, record.id, label=record.describe())
                for record in doomed
                if record.id
            ]
            self._apply(operations, result)
            return result

        results = self._for_each_target(
            targets,
            clean,
            lambda target, e: ReconciliationResult(
                user=target.user_principal_name, error=str(e)
            ),
        )
        summary = RunSummary(
            results=results, dry_run=self.dry_run, title="Cleanup"
        )
        logger.info(
            f"Cleanup complete: deleted {summary.deleted}, errors {summary.errors}"
        )
        return summary

    def run_folder_deletion(
        self,
        folder_name: str,
        target_group_id: str | None = None,
        only_users: list[str] | None = None,
    ) -> FolderDeletionSummary:
        """
        Delete a named contact folder (and everything in it) for every target.

        Args:
            folder_name: Exact display name of the folder
            target_group_id: Override the configured target group
            only_users: Restrict the run to these principal names
        """
        if not folder_name:
            raise ValueError("folder_name is required")

        logger.info(f"Starting deletion of contact folder '{folder_name}'")
        targets = self._load_targets(target_group_id, only_users)

        def delete_folder(target: TargetUser) -> FolderDeletionResult:
            result = FolderDeletionResult(user=target.user_principal_name)
            folder = find_folder(self.loader.load_folders(target.id), folder_name)
            if folder is None:
                return result

            result.folder_found = True
            result.contact_count = len(self.loader.load_contacts(target.id, folder.id))

            if self.dry_run:
                logger.info(
                    f"[DRY RUN] Would delete folder '{folder_name}' "
                    f"({result.contact_count} contacts)"
                )
                return result

            self.client.execute(
                "DELETE", f"/users/{target.id}/contactFolders/{folder.id}"
            )
            result.deleted = True
            return result

        results = self._for_each_target(
            targets,
            delete_folder,
            lambda target, e: FolderDeletionResult(
                user=target.user_principal_name, error=str(e)
            ),
        )
        summary = FolderDeletionSummary(
            folder_name=folder_name, results=results, dry_run=self.dry_run
        )
        logger.info(
            f"Folder deletion complete: {summary.folders_deleted} folders deleted, "
            f"errors {summary.errors}"
        )
        return summary
