"""
Pydantic models for licenses and their public projection.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import Field

from .work import RecordModel

class LicenseMetadata(RecordModel):
    """Descriptive metadata supplied by the author at issuance time."""
    author_name: Optional[str] = Field(default=None, description="Name printed on the license")
    dob: Optional[str] = Field(default=None, description="Author date of birth")
    address: Optional[str] = Field(default=None, description="Author postal address")
    mobile: Optional[str] = Field(default=None, description="Author phone number")
    work_type: Optional[str] = Field(default=None, description="Kind of work (poem, script, ...)")

class License(LicenseMetadata):
    """Proof of issuance for exactly one work."""
    id: str = Field(..., description="Unique license identifier")
    work_id: str = Field(..., description="ID of the licensed work")
    owner_id: str = Field(..., description="ID of the license holder")
    issued_at: datetime = Field(..., description="Issuance timestamp (UTC)")
    is_active: bool = Field(default=True)
    download_url: Optional[str] = Field(default=None, description="Rendered certificate location")

    def to_public(self) -> "PublicLicense":
        return PublicLicense(
            id=self.id,
            work_id=self.work_id,
            issued_at=self.issued_at,
            is_active=self.is_active,
            author_name=self.author_name,
            work_type=self.work_type,
        )

class PublicLicense(RecordModel):
    """Fields safe to show to anyone holding a license ID."""
    id: str
    work_id: str
    issued_at: datetime
    is_active: bool
    author_name: Optional[str] = None
    work_type: Optional[str] = None

class LicenseIssueRequest(LicenseMetadata):
    """Body of a license issuance request."""
    work_id: str = Field(default="", description="ID of the work to license")

class DownloadUrlRequest(RecordModel):
    url: str = Field(..., description="Location of the rendered certificate")

class PublicWorkSummary(RecordModel):
    """Work fields exposed by public verification. Content is never included."""
    id: str
    title: str
    submitted_at: datetime
    is_licensed: bool

class VerificationInfo(RecordModel):
    verified: bool = True
    verified_at: datetime
    verified_by: str

class LicenseVerificationResponse(RecordModel):
    license: PublicLicense
    work: Optional[PublicWorkSummary] = None
    verification: VerificationInfo

class LicenseListResponse(RecordModel):
    licenses: List[License] = Field(default_factory=list)
