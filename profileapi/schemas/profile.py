from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictStr, model_validator
from pydantic.alias_generators import to_camel

from profileapi.utils.timezone_utils import isoformat_utc


class UserProfile(BaseModel):
    """Stored profile record for one anonymous id"""

    anon_id: str
    linked_account_id: Optional[str] = None  # reserved for account linking
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdateRequest(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""

    display_name: Optional[StrictStr] = Field(
        None,
        max_length=100,
        validation_alias=AliasChoices("displayName", "name"),
        description="Display name",
    )
    avatar_url: Optional[StrictStr] = Field(
        None,
        max_length=2048,
        validation_alias=AliasChoices("avatarUrl", "avatar_url"),
        description="Avatar image URL",
    )

    @model_validator(mode="after")
    def reject_explicit_null(self):
        for field_name in ("display_name", "avatar_url"):
            if field_name in self.model_fields_set and getattr(self, field_name) is None:
                raise ValueError(f"{to_camel(field_name)} must be a string")
        return self

    def changes(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}


class UserInfoResponse(BaseModel):
    anon_id: str
    linked_account_id: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserInfoResponse":
        return cls(
            anon_id=profile.anon_id,
            linked_account_id=profile.linked_account_id,
            display_name=profile.display_name,
            avatar_url=profile.avatar_url,
            created_at=isoformat_utc(profile.created_at),
            updated_at=isoformat_utc(profile.updated_at),
        )


class ResolvedIdentity(BaseModel):
    """Outcome of resolving (and possibly bootstrapping) an anonymous id"""

    anon_id: str
    minted: bool = False  # no id was supplied; a fresh one was generated
    created: bool = False  # this call bootstrapped the profile and credits
