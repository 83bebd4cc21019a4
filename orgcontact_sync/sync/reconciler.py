"""
Reconciliation of a user's existing contacts against the directory.

Computes the create/update/delete operations that make one target user's
contact list match the desired set of directory entries:

1. Existing contacts are indexed by normalized email address.
2. Each desired entry claims its matching contact (update if the
   fingerprint differs) or becomes a create.
3. Managed contacts left unclaimed become deletes.

Contacts without the managed category are never deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from orgcontact_sync.sync.contact import (
    DEFAULT_MANAGED_CATEGORY,
    ContactPayload,
    ContactRecord,
    DirectoryEntry,
    TargetUser,
)
from orgcontact_sync.sync.operations import (
    ContactOperation,
    CreateContact,
    DeleteContact,
    OperationKind,
    UpdateContact,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcilePolicy:
    """
    Switches controlling which operations reconciliation may emit.

    Attributes:
        update_existing: Emit updates for matched contacts whose content changed
        remove_missing: Emit deletes for managed contacts no longer desired
        managed_category: Category tag identifying managed contacts
    """

    update_existing: bool = True
    remove_missing: bool = True
    managed_category: str = DEFAULT_MANAGED_CATEGORY


@dataclass
class ReconcilePlan:
    """Operations for one user plus the number of matched, unchanged contacts."""

    operations: list[ContactOperation] = field(default_factory=list)
    unchanged: int = 0
    skipped_no_email: int = 0

    def count(self, kind: OperationKind) -> int:
        return sum(1 for op in self.operations if op.kind is kind)

    @property
    def creates(self) -> list[ContactOperation]:
        return [op for op in self.operations if op.kind is OperationKind.CREATE]

    @property
    def updates(self) -> list[ContactOperation]:
        return [op for op in self.operations if op.kind is OperationKind.UPDATE]

    @property
    def deletes(self) -> list[ContactOperation]:
        return [op for op in self.operations if op.kind is OperationKind.DELETE]

    def has_changes(self) -> bool:
        return bool(self.operations)


def reconcile(
    existing: list[ContactRecord],
    desired: list[DirectoryEntry],
    policy: ReconcilePolicy | None = None,
    target: TargetUser | None = None,
    user_id: str | None = None,
    folder_id: str | None = None,
) -> ReconcilePlan:
    """
    Compute the operations that bring ``existing`` in line with ``desired``.

    Args:
        existing: Contacts currently stored for the user
        desired: Directory entries the user should have as contacts
        policy: Update/remove switches (default: both enabled)
        target: The user being synchronized; its own entry is skipped
        user_id: Id used in emitted operations (default: target.id)
        folder_id: Contact folder new contacts are created in

    Returns:
        ReconcilePlan with creates/updates in desired order followed by
        deletes in existing order
    """
    policy = policy or ReconcilePolicy()
    owner = user_id or (target.id if target else "")
    plan = ReconcilePlan()

    # First record wins when the same address appears twice
    unclaimed: dict[str, ContactRecord] = {}
    for record in existing:
        key = record.email_key
        if key and key not in unclaimed:
            unclaimed[key] = record

    seen: set[str] = set()
    deletes: list[ContactOperation] = []

    for entry in desired:
        if target is not None and target.is_self(entry):
            continue

        key = entry.email_key
        if not key:
            plan.skipped_no_email += 1
            continue

        if key in seen:
            logger.debug(f"Skipping repeated directory address {key}")
            continue
        seen.add(key)

        record = unclaimed.pop(key, None)
        if record is None:
            payload = ContactPayload.from_directory_entry(
                entry, policy.managed_category
            )
            plan.operations.append(CreateContact(owner, payload, folder_id=folder_id))
            continue

        if not policy.update_existing:
            plan.unchanged += 1
            continue

        payload = ContactPayload.from_directory_entry(
            entry, policy.managed_category, extra_categories=record.categories
        )
        if payload.fingerprint() == record.fingerprint():
            plan.unchanged += 1
        else:
            logger.debug(
                f"Contact {key} changed: {record.fingerprint()!r} -> "
                f"{payload.fingerprint()!r}"
            )
            plan.operations.append(UpdateContact(owner, record.id, payload))

    if policy.remove_missing:
        for record in unclaimed.values():
            if record.has_category(policy.managed_category):
                deletes.append(
                    DeleteContact(owner, record.id, label=record.describe())
                )

    plan.operations.extend(deletes)
    return plan
