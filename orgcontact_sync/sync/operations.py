"""
Contact operations produced by reconciliation and consumed by execution.

Each operation kind is its own frozen dataclass carrying only the fields
valid for it, so an ill-formed operation (an update without a contact id,
a delete with a payload) cannot be constructed.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

from orgcontact_sync.sync.contact import ContactPayload


class OperationKind(str, Enum):
    """The three mutations a reconciliation can emit."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def _new_tracking_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class CreateContact:
    """Create a contact for a user, optionally inside a contact folder."""

    kind: ClassVar[OperationKind] = OperationKind.CREATE

    user_id: str
    payload: ContactPayload
    folder_id: str | None = None
    tracking_id: str = field(default_factory=_new_tracking_id)

    def to_request(self) -> tuple[str, str, dict[str, Any] | None]:
        if self.folder_id:
            url = f"/users/{self.user_id}/contactFolders/{self.folder_id}/contacts"
        else:
            url = f"/users/{self.user_id}/contacts"
        return "POST", url, self.payload.to_api_format()

    def describe(self) -> str:
        return f"create {self.payload.display_name} <{self.payload.email}>"


@dataclass(frozen=True)
class UpdateContact:
    """Replace the synchronized fields of an existing contact."""

    kind: ClassVar[OperationKind] = OperationKind.UPDATE

    user_id: str
    contact_id: str
    payload: ContactPayload
    tracking_id: str = field(default_factory=_new_tracking_id)

    def __post_init__(self) -> None:
        if not self.contact_id:
            raise ValueError("contact_id is required for update")

    def to_request(self) -> tuple[str, str, dict[str, Any] | None]:
        url = f"/users/{self.user_id}/contacts/{self.contact_id}"
        return "PATCH", url, self.payload.to_api_format()

    def describe(self) -> str:
        return f"update {self.payload.display_name} <{self.payload.email}>"


@dataclass(frozen=True)
class DeleteContact:
    """Delete a contact; ``label`` is only used for reporting."""

    kind: ClassVar[OperationKind] = OperationKind.DELETE

    user_id: str
    contact_id: str
    label: str = ""
    tracking_id: str = field(default_factory=_new_tracking_id)

    def __post_init__(self) -> None:
        if not self.contact_id:
            raise ValueError("contact_id is required for delete")

    def to_request(self) -> tuple[str, str, dict[str, Any] | None]:
        return "DELETE", f"/users/{self.user_id}/contacts/{self.contact_id}", None

    def describe(self) -> str:
        return f"delete {self.label or self.contact_id}"


ContactOperation = Union[CreateContact, UpdateContact, DeleteContact]


@dataclass
class OperationResult:
    """
    Outcome of executing one operation.

    Attributes:
        operation: The operation that was executed
        success: True if the API accepted it
        status: HTTP status code, if one was received
        error: Error message for failed operations
        response: Decoded response body, if any
    """

    operation: ContactOperation
    success: bool
    status: int | None = None
    error: str | None = None
    response: dict[str, Any] | None = None

    @property
    def kind(self) -> OperationKind:
        return self.operation.kind
