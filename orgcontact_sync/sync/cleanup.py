"""
Duplicate and stale contact cleanup.

Alternate reconciliation policy that only ever deletes:
- contacts tagged with a category marked for removal
- duplicates sharing a display name or a primary email address, keeping
  one survivor per group

Also locates contact folders for whole-folder deletion.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from orgcontact_sync.sync.contact import ContactRecord
from orgcontact_sync.utils import normalize_email, normalize_name

logger = logging.getLogger(__name__)


def pick_survivor(
    group: list[ContactRecord],
    preserve_category: str | None,
    remove_category: str | None,
) -> ContactRecord:
    """
    Choose the record to keep from a duplicate group.

    Prefers the first record carrying ``preserve_category`` and not carrying
    ``remove_category``; otherwise the first record in group order.
    """
    for record in group:
        if record.has_category(preserve_category) and not record.has_category(
            remove_category
        ):
            return record
    return group[0]


def _group_by(
    records: list[ContactRecord], key: Callable[[ContactRecord], str]
) -> dict[str, list[ContactRecord]]:
    """Group records by a key, dropping records with an empty key."""
    groups: dict[str, list[ContactRecord]] = defaultdict(list)
    for record in records:
        value = key(record)
        if value:
            groups[value].append(record)
    return groups


def plan_cleanup(
    existing: list[ContactRecord],
    preserve_category: str | None,
    remove_category: str | None,
    match_names: bool = True,
) -> list[ContactRecord]:
    """
    Select the contacts a cleanup run should delete.

    Args:
        existing: All contacts of one user
        preserve_category: Category whose records are preferred as survivors
        remove_category: Category whose records are always deleted
        match_names: Also treat records sharing a display name as duplicates.
            Distinct people with the same name are consolidated when enabled.

    Returns:
        Records to delete, each at most once, in the order they were marked
    """
    marked: dict[int, ContactRecord] = {}

    def mark(record: ContactRecord, reason: str) -> None:
        if id(record) not in marked:
            logger.debug(f"Marking {record.describe()} for deletion: {reason}")
            marked[id(record)] = record

    if remove_category:
        for record in existing:
            if record.has_category(remove_category):
                mark(record, f"category '{remove_category}'")

    if match_names:
        by_name = _group_by(existing, lambda r: normalize_name(r.display_name))
        for name, group in by_name.items():
            if len(group) < 2:
                continue
            survivor = pick_survivor(group, preserve_category, remove_category)
            for record in group:
                if record is not survivor:
                    mark(record, f"duplicate name '{name}'")

    # Only records that survived the passes above take part in email grouping
    remaining = [r for r in existing if id(r) not in marked]
    by_email = _group_by(remaining, lambda r: normalize_email(r.primary_email))
    for email, group in by_email.items():
        if len(group) < 2:
            continue
        survivor = pick_survivor(group, preserve_category, remove_category)
        for record in group:
            if record is not survivor:
                mark(record, f"duplicate email '{email}'")

    return list(marked.values())


@dataclass(frozen=True)
class ContactFolder:
    """A contact folder in a user's mailbox."""

    id: str
    display_name: str
    parent_folder_id: str | None = None

    @classmethod
    def from_api_response(cls, folder: dict[str, Any]) -> ContactFolder:
        return cls(
            id=folder.get("id", ""),
            display_name=folder.get("displayName") or "",
            parent_folder_id=folder.get("parentFolderId"),
        )


def find_folder(folders: list[ContactFolder], name: str) -> ContactFolder | None:
    """
    Locate a folder by exact display name.

    Returns:
        The first folder whose display name equals ``name``, or None
    """
    for folder in folders:
        if folder.display_name == name:
            return folder
    return None
