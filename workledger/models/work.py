"""
Pydantic models for works, their revision history and edit patches.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

class RecordModel(BaseModel):
    """Base for persisted records: camelCase on the wire and on disk, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class Work(RecordModel):
    """A submitted piece of writing."""
    id: str = Field(..., description="Unique identifier, never reused")
    owner_id: str = Field(..., description="ID of the submitting author")
    title: str = Field(..., description="Title of the work")
    content: str = Field(..., description="Full text of the work")
    submitted_at: datetime = Field(..., description="Creation timestamp (UTC)")
    is_licensed: bool = Field(default=False, description="True once a license was issued")
    license_id: Optional[str] = Field(default=None, description="ID of the issued license")
    plagiarism_score: int = Field(default=0, ge=0, le=100, description="Score recorded when the work was admitted")

class WorkRevision(RecordModel):
    """Immutable snapshot recorded on every edit of a work."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., description="Unique revision identifier")
    work_id: str = Field(..., description="ID of the revised work")
    owner_id: str = Field(..., description="Owner of the work at edit time")
    title: str
    content: str
    updated_at: datetime = Field(..., description="Edit timestamp (UTC)")

class WorkPatch(RecordModel):
    """Partial update naming only the mutable fields of a work."""
    title: Optional[str] = None
    content: Optional[str] = None
    is_licensed: Optional[bool] = None
    license_id: Optional[str] = None

class WorkSubmitRequest(RecordModel):
    """Body of a JSON work submission."""
    title: str = Field(default="", description="Title of the work")
    content: str = Field(default="", description="Full text of the work")

class WorkEditRequest(RecordModel):
    """Body of a user edit. Licensing fields are not editable by authors."""
    title: Optional[str] = Field(default=None, description="New title")
    content: Optional[str] = Field(default=None, description="New content")

class WorkListResponse(RecordModel):
    works: List[Work] = Field(default_factory=list)

class RevisionListResponse(RecordModel):
    revisions: List[WorkRevision] = Field(default_factory=list)
