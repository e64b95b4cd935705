"""
Client schemas: the managed entity, mutator inputs and mutator outcomes.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from lexcore.schemas.base import BaseSchema, validate_email, validate_non_empty_string

DEFAULT_CASE_STATUS = "Initial Consultation"


def _normalize_tags(values: Any) -> list[str]:
    """Tags behave as a set: trimmed, de-duplicated, first occurrence wins."""
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    seen: list[str] = []
    for tag in values:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class Client(BaseSchema):
    """A client record as confirmed by the store of record. Immutable."""

    model_config = ConfigDict(
        from_attributes=True,
        frozen=True,
        str_strip_whitespace=True,
        use_enum_values=True,
    )

    id: str
    full_name: str
    email: str
    phone: str = ""
    company_name: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    assigned_attorney_id: Optional[str] = None
    account_id: Optional[str] = Field(default=None, description="Linked external login account")

    is_dropped: bool = False
    dropped_date: Optional[datetime] = None
    dropped_reason: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    account_number: Optional[str] = None
    case_status: str = DEFAULT_CASE_STATUS
    date_of_birth: Optional[str] = None
    accident_date: Optional[str] = None
    accident_location: Optional[str] = None
    injury_type: Optional[str] = None
    case_description: Optional[str] = None
    insurance_company: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    insurance_adjuster_name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def enforce_drop_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        if data.get("assigned_attorney_id") in ("", None):
            data["assigned_attorney_id"] = None
        else:
            data["assigned_attorney_id"] = str(data["assigned_attorney_id"])
        if data.get("is_dropped"):
            if not data.get("dropped_date") or not (data.get("dropped_reason") or "").strip():
                raise ValueError("Dropped clients must carry a dropped date and reason")
        else:
            data["is_dropped"] = False
            data["dropped_date"] = None
            data["dropped_reason"] = None
        if not data.get("account_number") and data.get("id"):
            data["account_number"] = f"A{data['id'][:3]}"
        if not data.get("case_status"):
            data["case_status"] = DEFAULT_CASE_STATUS
        return data

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value: Any) -> list[str]:
        return _normalize_tags(value)

    @property
    def has_linked_account(self) -> bool:
        return bool(self.account_id)


class ClientDraft(BaseSchema):
    """Data for a new client. ``password`` requests a linked login account."""

    full_name: str
    email: str
    phone: str = ""
    company_name: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    assigned_attorney_id: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)

    date_of_birth: Optional[str] = None
    accident_date: Optional[str] = None
    accident_location: Optional[str] = None
    injury_type: Optional[str] = None
    case_description: Optional[str] = None
    insurance_company: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    insurance_adjuster_name: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value: Any) -> list[str]:
        return _normalize_tags(value)

    def record_data(self) -> dict[str, Any]:
        """Fields sent to the store of record; the credential never is."""
        data = self.model_dump(exclude={"password"})
        data["assigned_attorney_id"] = data.get("assigned_attorney_id") or None
        return data


class ClientPatch(BaseSchema):
    """Partial update. Only fields explicitly set are sent."""

    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[list[str]] = None
    assigned_attorney_id: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)

    date_of_birth: Optional[str] = None
    accident_date: Optional[str] = None
    accident_location: Optional[str] = None
    injury_type: Optional[str] = None
    case_description: Optional[str] = None
    insurance_company: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    insurance_adjuster_name: Optional[str] = None
    case_status: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value: Any) -> Optional[list[str]]:
        if value is None:
            return None
        return _normalize_tags(value)

    def record_patch(self) -> dict[str, Any]:
        patch = self.model_dump(exclude_unset=True, exclude={"password"})
        if "assigned_attorney_id" in patch:
            patch["assigned_attorney_id"] = patch["assigned_attorney_id"] or None
        return patch


# Request schemas: input validation happens here, before any mutator runs.

REQUIRED_COLUMNS = ("full_name", "email", "phone")


class ClientCreateRequest(ClientDraft):
    full_name: str = Field(..., min_length=2, max_length=200)
    phone: str = Field(..., min_length=7, max_length=40)
    password: Optional[str] = Field(default=None, min_length=8, repr=False)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return validate_email(value)

    @field_validator("password", mode="before")
    @classmethod
    def blank_password_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ClientUpdateRequest(ClientPatch):
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    phone: Optional[str] = Field(default=None, min_length=7, max_length=40)
    password: Optional[str] = Field(default=None, min_length=8, repr=False)

    @model_validator(mode="before")
    @classmethod
    def required_columns_not_null(cls, data: Any) -> Any:
        # Omitted means "unchanged"; an explicit null would blank a NOT NULL column
        if isinstance(data, dict):
            nulled = [name for name in REQUIRED_COLUMNS if name in data and data[name] is None]
            if nulled:
                raise ValueError(f"{', '.join(nulled)} cannot be null")
        return data

    @field_validator("email")
    @classmethod
    def check_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return validate_email(value)

    @field_validator("password", mode="before")
    @classmethod
    def blank_password_is_none(cls, value: Any) -> Any:
        # An empty password field on the edit form means "keep the current one".
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ClientTransferRequest(BaseSchema):
    attorney_id: str = Field(..., min_length=1)

    @field_validator("attorney_id")
    @classmethod
    def check_attorney(cls, value: str) -> str:
        return validate_non_empty_string(value)


class ClientDropRequest(BaseSchema):
    reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator("reason")
    @classmethod
    def check_reason(cls, value: str) -> str:
        return validate_non_empty_string(value)


# Outcomes

class FailureKind(str, Enum):
    PERSISTENCE = "persistence"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"


class ClientView(str, Enum):
    LIST = "list"
    DETAILS = "details"
    FORM = "form"


class MutationOutcome(BaseSchema):
    """Result of a lifecycle mutator. Mutators report, they never raise."""

    ok: bool
    client: Optional[Client] = None
    failure: Optional[FailureKind] = None
    message: str = ""
    warnings: list[str] = Field(default_factory=list)
    reset_view: bool = Field(default=False, description="Caller must return to the default list view")
    redirect_to: Optional[str] = Field(default=None, description="List view to return to when reset_view is set")

    @classmethod
    def success(cls, client: Optional[Client] = None, message: str = "", warnings: Optional[list[str]] = None,
                reset_view: bool = False, redirect_to: Optional[str] = None) -> "MutationOutcome":
        return cls(ok=True, client=client, message=message, warnings=list(warnings or []),
                   reset_view=reset_view, redirect_to=redirect_to)

    @classmethod
    def failed(cls, failure: FailureKind, message: str) -> "MutationOutcome":
        return cls(ok=False, failure=failure, message=message)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


class ClientStoreSnapshot(BaseSchema):
    active: list[Client] = Field(default_factory=list)
    dropped: list[Client] = Field(default_factory=list)
    selected: Optional[Client] = None
    editing: Optional[Client] = None
    active_view: ClientView = ClientView.LIST
    loading: bool = False
