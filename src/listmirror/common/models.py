"""Pydantic domain models shared across the application."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DID_PREFIX = "did:"

LIST_COLLECTION = "app.bsky.graph.list"
LIST_ITEM_COLLECTION = "app.bsky.graph.listitem"


# --- Label events ---

class LabelEvent(BaseModel):
    """One label emitted by the labeler (``com.atproto.label.defs#label``)."""

    model_config = ConfigDict(extra="ignore")

    src: str | None = None
    uri: str
    cid: str | None = None
    val: str
    neg: bool = False
    seq: int | None = None
    cts: str | None = None
    exp: str | None = None

    @field_validator("neg", mode="before")
    @classmethod
    def _neg_default(cls, value: object) -> object:
        return False if value is None else value

    @property
    def did(self) -> str | None:
        """The subject DID, or None when the label targets a record URI."""
        if self.uri.startswith(DID_PREFIX):
            return self.uri
        return None


# --- Lists ---

class ListDefinition(BaseModel):
    """A label mirrored into one list owned by this service."""

    model_config = ConfigDict(frozen=True)

    label: str
    rkey: str


class ListItemRecord(BaseModel):
    """``app.bsky.graph.listitem`` record body."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(default=LIST_ITEM_COLLECTION, alias="$type")
    subject: str
    list: str
    created_at: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        alias="createdAt",
    )

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)


# --- Mutation results ---

class MutationOutcome(StrEnum):
    ADDED = "added"
    ALREADY_MEMBER = "already_member"
    REMOVED = "removed"
    NOT_FOUND = "not_found"
    SKIPPED = "skipped"
    FAILED = "failed"
