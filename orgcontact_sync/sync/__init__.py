"""
orgcontact_sync.sync - Reconciliation and cleanup planning
"""

from orgcontact_sync.sync.cleanup import ContactFolder, find_folder, plan_cleanup
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
    OperationResult,
    UpdateContact,
)
from orgcontact_sync.sync.reconciler import ReconcilePlan, ReconcilePolicy, reconcile

__all__ = [
    "DEFAULT_MANAGED_CATEGORY",
    "ContactFolder",
    "ContactOperation",
    "ContactPayload",
    "ContactRecord",
    "CreateContact",
    "DeleteContact",
    "DirectoryEntry",
    "OperationKind",
    "OperationResult",
    "ReconcilePlan",
    "ReconcilePolicy",
    "TargetUser",
    "UpdateContact",
    "find_folder",
    "plan_cleanup",
    "reconcile",
]
