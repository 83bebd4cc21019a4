"""
Data model for directory-to-contacts synchronization.

Provides immutable snapshots of:
- Directory entries (the desired side, read from /users)
- Contact records (the existing side, read from a user's contacts)
- Target users (accounts that receive a synchronized contact set)

and the contact payload sent on create/update, together with the
fingerprint used to tell real updates from no-ops.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from orgcontact_sync.utils import normalize_email

# Category tag carried by every contact this system manages
DEFAULT_MANAGED_CATEGORY = "Company Contacts"

# Fields requested when listing directory users
USER_SELECT_FIELDS = [
    "id",
    "userPrincipalName",
    "displayName",
    "givenName",
    "surname",
    "mail",
    "businessPhones",
    "mobilePhone",
    "companyName",
    "department",
    "jobTitle",
    "accountEnabled",
    "assignedLicenses",
    "onPremisesSyncEnabled",
]

# Fields requested when listing a user's contacts
CONTACT_SELECT_FIELDS = [
    "id",
    "displayName",
    "givenName",
    "surname",
    "emailAddresses",
    "businessPhones",
    "mobilePhone",
    "companyName",
    "department",
    "jobTitle",
    "categories",
    "createdDateTime",
    "parentFolderId",
]


def compute_fingerprint(
    given_name: str | None,
    surname: str | None,
    job_title: str | None,
    department: str | None,
    company: str | None,
    business_phone: str | None,
    mobile_phone: str | None,
) -> str:
    """
    Summarize the mutable contact fields into one comparable string.

    Comparison is exact: any casing or whitespace difference counts as a
    change.
    """
    parts = [
        given_name,
        surname,
        job_title,
        department,
        company,
        business_phone,
        mobile_phone,
    ]
    return "|".join(part or "" for part in parts)


def _parse_timestamp(value: str | None) -> datetime | None:
    """Parse a Graph ISO-8601 timestamp, tolerating the 'Z' suffix."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None


@dataclass(frozen=True)
class DirectoryEntry:
    """
    A user record from the organization directory.

    Attributes:
        id: Directory object id
        user_principal_name: Sign-in name (e.g. "alice@example.com")
        display_name: Full display name
        mail: Primary SMTP address; the join key when present
        business_phones: Office phone numbers, first one is synchronized
        account_enabled: Whether the account can sign in
        has_license: Whether any license is assigned
        directory_synced: Whether the account is synced from on-premises AD
    """

    id: str
    user_principal_name: str = ""
    display_name: str = ""
    given_name: str | None = None
    surname: str | None = None
    mail: str | None = None
    business_phones: tuple[str, ...] = ()
    mobile_phone: str | None = None
    company_name: str | None = None
    department: str | None = None
    job_title: str | None = None
    account_enabled: bool = True
    has_license: bool = True
    directory_synced: bool = False

    @classmethod
    def from_api_response(cls, user: dict[str, Any]) -> DirectoryEntry:
        """
        Create a DirectoryEntry from a Graph user object.

        Example API response structure::

            {
                'id': '8f1c...',
                'userPrincipalName': 'alice@example.com',
                'displayName': 'Alice Smith',
                'mail': 'alice@example.com',
                'businessPhones': ['+1 555 0100'],
                'accountEnabled': True,
                'assignedLicenses': [{'skuId': '...'}],
                'onPremisesSyncEnabled': True
            }
        """
        return cls(
            id=user.get("id", ""),
            user_principal_name=user.get("userPrincipalName") or "",
            display_name=user.get("displayName") or "",
            given_name=user.get("givenName"),
            surname=user.get("surname"),
            mail=user.get("mail"),
            business_phones=tuple(p for p in user.get("businessPhones") or [] if p),
            mobile_phone=user.get("mobilePhone"),
            company_name=user.get("companyName"),
            department=user.get("department"),
            job_title=user.get("jobTitle"),
            # Missing means the field was not selected; treat as enabled
            account_enabled=user.get("accountEnabled", True) is not False,
            has_license=bool(user.get("assignedLicenses")),
            directory_synced=bool(user.get("onPremisesSyncEnabled")),
        )

    @property
    def email_key(self) -> str:
        """Normalized primary address, empty if the entry has none."""
        return normalize_email(self.mail)

    @property
    def first_business_phone(self) -> str | None:
        return self.business_phones[0] if self.business_phones else None


@dataclass(frozen=True)
class ContactRecord:
    """
    A contact stored in a target user's mailbox.

    The id is owned by the remote store; records are only read here.
    """

    id: str
    display_name: str = ""
    given_name: str | None = None
    surname: str | None = None
    email_addresses: tuple[str, ...] = ()
    business_phones: tuple[str, ...] = ()
    mobile_phone: str | None = None
    company_name: str | None = None
    department: str | None = None
    job_title: str | None = None
    categories: frozenset[str] = field(default_factory=frozenset)
    created: datetime | None = None
    parent_folder_id: str | None = None

    @classmethod
    def from_api_response(cls, contact: dict[str, Any]) -> ContactRecord:
        """
        Create a ContactRecord from a Graph contact object.

        Example API response structure::

            {
                'id': 'AAMkAD...',
                'displayName': 'Alice Smith',
                'emailAddresses': [{'name': 'Alice Smith',
                                    'address': 'alice@example.com'}],
                'categories': ['Company Contacts'],
                'createdDateTime': '2024-01-15T10:00:00Z'
            }
        """
        addresses = tuple(
            e.get("address", "")
            for e in contact.get("emailAddresses") or []
            if e.get("address")
        )
        return cls(
            id=contact.get("id", ""),
            display_name=contact.get("displayName") or "",
            given_name=contact.get("givenName"),
            surname=contact.get("surname"),
            email_addresses=addresses,
            business_phones=tuple(p for p in contact.get("businessPhones") or [] if p),
            mobile_phone=contact.get("mobilePhone"),
            company_name=contact.get("companyName"),
            department=contact.get("department"),
            job_title=contact.get("jobTitle"),
            categories=frozenset(contact.get("categories") or []),
            created=_parse_timestamp(contact.get("createdDateTime")),
            parent_folder_id=contact.get("parentFolderId"),
        )

    @property
    def primary_email(self) -> str | None:
        return self.email_addresses[0] if self.email_addresses else None

    @property
    def email_key(self) -> str:
        """Normalized primary address, empty if the record has none."""
        return normalize_email(self.primary_email)

    def has_category(self, category: str | None) -> bool:
        """Check whether the record carries a category tag."""
        return bool(category) and category in self.categories

    def fingerprint(self) -> str:
        return compute_fingerprint(
            self.given_name,
            self.surname,
            self.job_title,
            self.department,
            self.company_name,
            self.business_phones[0] if self.business_phones else None,
            self.mobile_phone,
        )

    def describe(self) -> str:
        """Human-readable label used in logs and CLI output."""
        name = self.display_name or "(no name)"
        if self.primary_email:
            return f"{name} <{self.primary_email}>"
        return name


@dataclass(frozen=True)
class TargetUser:
    """An account that receives the synchronized contact set."""

    id: str
    user_principal_name: str
    mail: str | None = None
    enabled: bool = True

    @classmethod
    def from_directory_entry(cls, entry: DirectoryEntry) -> TargetUser:
        return cls(
            id=entry.id,
            user_principal_name=entry.user_principal_name,
            mail=entry.mail,
            enabled=entry.account_enabled,
        )

    def is_self(self, entry: DirectoryEntry) -> bool:
        """Check whether a directory entry describes this very user."""
        if entry.id and entry.id == self.id:
            return True
        own_keys = {
            normalize_email(self.user_principal_name),
            normalize_email(self.mail),
        } - {""}
        return bool(entry.email_key) and entry.email_key in own_keys


@dataclass(frozen=True)
class ContactPayload:
    """
    The body of a contact create or update.

    Built from a directory entry; converts to Graph contact JSON.
    """

    display_name: str
    email: str
    given_name: str | None = None
    surname: str | None = None
    business_phones: tuple[str, ...] = ()
    mobile_phone: str | None = None
    company_name: str | None = None
    department: str | None = None
    job_title: str | None = None
    categories: tuple[str, ...] = ()

    @classmethod
    def from_directory_entry(
        cls,
        entry: DirectoryEntry,
        managed_category: str = DEFAULT_MANAGED_CATEGORY,
        extra_categories: frozenset[str] | None = None,
    ) -> ContactPayload:
        """
        Build the contact an entry should become.

        Args:
            entry: Directory entry with an email address
            managed_category: Tag marking the contact as managed
            extra_categories: Categories already on an existing record,
                preserved on update

        Raises:
            ValueError: If the entry has no email address
        """
        if not entry.mail:
            raise ValueError(f"Directory entry {entry.id} has no email address")

        categories = set(extra_categories or ())
        categories.add(managed_category)

        return cls(
            display_name=entry.display_name or entry.mail,
            email=entry.mail.strip(),
            given_name=entry.given_name,
            surname=entry.surname,
            business_phones=entry.business_phones[:1],
            mobile_phone=entry.mobile_phone,
            company_name=entry.company_name,
            department=entry.department,
            job_title=entry.job_title,
            categories=tuple(sorted(categories)),
        )

    def fingerprint(self) -> str:
        return compute_fingerprint(
            self.given_name,
            self.surname,
            self.job_title,
            self.department,
            self.company_name,
            self.business_phones[0] if self.business_phones else None,
            self.mobile_phone,
        )

    def to_api_format(self) -> dict[str, Any]:
        """
        Convert to Graph contact format for create/update requests.

        Note:
            Text fields that are unset are sent as null so an update clears
            values removed from the directory.
        """
        return {
            "displayName": self.display_name,
            "givenName": self.given_name,
            "surname": self.surname,
            "emailAddresses": [{"address": self.email, "name": self.display_name}],
            "businessPhones": list(self.business_phones),
            "mobilePhone": self.mobile_phone,
            "companyName": self.company_name,
            "department": self.department,
            "jobTitle": self.job_title,
            "categories": list(self.categories),
        }
