from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lockflow.unlock.errors import DataIntegrityError
from lockflow.unlock.evaluator import validate_requirement
from lockflow.unlock.models import UnlockMethod

FileType = Literal["PDF", "ZIP", "IMAGE", "DOC", "LINK"]


class ResourceCreateIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    file_type: FileType = "PDF"
    # Storage path returned by the upload (client uploads directly) or an external URL
    file_url: str = Field(..., min_length=1)
    preview_image: str | None = None
    unlock_method: UnlockMethod
    unlock_requirement: str

    @model_validator(mode="after")
    def requirement_matches_method(self) -> "ResourceCreateIn":
        try:
            self.unlock_requirement = validate_requirement(self.unlock_method, self.unlock_requirement)
        except DataIntegrityError as e:
            raise ValueError(str(e)) from e
        return self


class ResourceOut(BaseModel):
    """Dashboard view: the owner sees the requirement."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    creator_id: str
    title: str
    description: str
    file_type: str
    file_url: str
    preview_image: str | None = None
    unlock_method: str
    unlock_requirement: str
    unlock_count: int
    created_at: datetime


class PublicResourceOut(BaseModel):
    """Visitor view: never carries the code or the file reference."""

    id: str
    creator_id: str
    title: str
    description: str
    file_type: str
    preview_image_url: str | None = None
    unlock_method: str
    delay_seconds: int | None = None  # TIME_DELAY only, shown as "stay N seconds"
    unlock_count: int


class CreatorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    brand_name: str
    bio: str
    profile_image: str | None = None
    banner_image: str | None = None
    socials: dict[str, str] = Field(default_factory=dict)


class PublicProfileOut(BaseModel):
    creator: CreatorOut
    resources: list[PublicResourceOut]


class CreatorStatsOut(BaseModel):
    total_resources: int
    total_unlocks: int
