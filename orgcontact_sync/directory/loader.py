"""
Directory snapshot loading.

Reads full collections from the Graph API (users, group members, contacts,
contact folders) and applies filtering only once a snapshot is complete,
so the total count is known and logged before anything is dropped.
"""

import logging
from dataclasses import dataclass, field

from orgcontact_sync.api.graph_api import GraphClient
from orgcontact_sync.sync.cleanup import ContactFolder
from orgcontact_sync.sync.contact import (
    CONTACT_SELECT_FIELDS,
    USER_SELECT_FIELDS,
    ContactRecord,
    DirectoryEntry,
    TargetUser,
)
from orgcontact_sync.utils import normalize_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectoryFilter:
    """
    Which directory entries belong in the desired set.

    Attributes:
        enabled_only: Drop disabled accounts
        licensed_only: Drop accounts without an assigned license
        include_external: Keep cloud-only accounts; when False only
            accounts synced from on-premises AD are kept
        exclude_addresses: Addresses (mail or UPN) never to publish
    """

    enabled_only: bool = True
    licensed_only: bool = True
    include_external: bool = True
    exclude_addresses: frozenset[str] = field(default_factory=frozenset)

    def excluded(self, entry: DirectoryEntry) -> bool:
        keys = {entry.email_key, normalize_email(entry.user_principal_name)}
        return bool(keys & self.exclude_addresses)


def apply_filter(
    entries: list[DirectoryEntry], directory_filter: DirectoryFilter
) -> list[DirectoryEntry]:
    """Return the entries that pass the filter, preserving order."""
    kept: list[DirectoryEntry] = []
    dropped = {"disabled": 0, "unlicensed": 0, "external": 0, "excluded": 0}

    for entry in entries:
        if directory_filter.enabled_only and not entry.account_enabled:
            dropped["disabled"] += 1
        elif directory_filter.licensed_only and not entry.has_license:
            dropped["unlicensed"] += 1
        elif not directory_filter.include_external and not entry.directory_synced:
            dropped["external"] += 1
        elif directory_filter.excluded(entry):
            dropped["excluded"] += 1
        else:
            kept.append(entry)

    reasons = ", ".join(
        f"{count} {reason}" for reason, count in dropped.items() if count
    )
    if reasons:
        logger.info(f"Filtered out {len(entries) - len(kept)} entries ({reasons})")
    return kept


class DirectoryLoader:
    """
    Loads directory and mailbox snapshots through a GraphClient.

    Usage:
        loader = DirectoryLoader(client, DirectoryFilter(include_external=False))
        desired = loader.load_entries(source_group_id="...")
        targets = loader.load_targets()
        contacts = loader.load_contacts(targets[0].id)
    """

    def __init__(
        self, client: GraphClient, directory_filter: DirectoryFilter | None = None
    ):
        self.client = client
        self.filter = directory_filter or DirectoryFilter()

    def _users_path(self, group_id: str | None) -> str:
        if group_id:
            # Cast to users so nested groups and devices are skipped
            return f"/groups/{group_id}/members/microsoft.graph.user"
        return "/users"

    def load_snapshot(self, group_id: str | None = None) -> list[DirectoryEntry]:
        """
        Load every user (or every user member of a group), unfiltered.

        Args:
            group_id: Group whose members to load; None loads all users
        """
        path = self._users_path(group_id)
        items = self.client.load_all(path, select=USER_SELECT_FIELDS)
        return [DirectoryEntry.from_api_response(item) for item in items]

    def load_entries(self, source_group_id: str | None = None) -> list[DirectoryEntry]:
        """
        Load the desired set of directory entries.

        Args:
            source_group_id: Restrict to members of this group

        Returns:
            Filtered entries in directory order
        """
        snapshot = self.load_snapshot(source_group_id)
        scope = f"group {source_group_id}" if source_group_id else "directory"
        logger.info(f"Loaded {len(snapshot)} users from {scope}")

        entries = apply_filter(snapshot, self.filter)
        logger.info(f"{len(entries)} users in desired contact set")
        return entries

    def load_targets(
        self,
        target_group_id: str | None = None,
        only_users: list[str] | None = None,
    ) -> list[TargetUser]:
        """
        Load the users whose contact lists are synchronized.

        Disabled accounts are always skipped; unlicensed ones are skipped
        when the filter requires a license (no mailbox to write to).

        Args:
            target_group_id: Restrict to members of this group
            only_users: Principal names or mail addresses to narrow to
        """
        snapshot = self.load_snapshot(target_group_id)
        logger.info(f"Loaded {len(snapshot)} candidate target users")

        wanted = {normalize_email(u) for u in only_users or []} - {""}
        targets: list[TargetUser] = []
        for entry in snapshot:
            if not entry.account_enabled:
                continue
            if self.filter.licensed_only and not entry.has_license:
                continue
            if wanted and not (
                {normalize_email(entry.user_principal_name), entry.email_key} & wanted
            ):
                continue
            targets.append(TargetUser.from_directory_entry(entry))

        if wanted and len(targets) < len(wanted):
            logger.warning(
                f"Only {len(targets)} of {len(wanted)} requested users were found"
            )
        logger.info(f"{len(targets)} target users to process")
        return targets

    def load_contacts(
        self, user_id: str, folder_id: str | None = None
    ) -> list[ContactRecord]:
        """
        Load a user's existing contacts.

        Args:
            user_id: Mailbox owner
            folder_id: Contact folder to read; None reads the default folder
        """
        if folder_id:
            path = f"/users/{user_id}/contactFolders/{folder_id}/contacts"
        else:
            path = f"/users/{user_id}/contacts"
        items = self.client.load_all(path, select=CONTACT_SELECT_FIELDS)
        return [ContactRecord.from_api_response(item) for item in items]

    def load_folders(self, user_id: str) -> list[ContactFolder]:
        """List a user's top-level contact folders."""
        items = self.client.load_all(f"/users/{user_id}/contactFolders")
        return [ContactFolder.from_api_response(item) for item in items]
