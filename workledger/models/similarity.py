"""
Pydantic models for similarity matching and response data structures.
"""

from typing import List, Optional, Dict, Any
from pydantic import Field

from .work import RecordModel, Work

NO_MATCH_DETAILS = "No plagiarism detected"
MATCH_DETAILS = "Potential similarities found"

class WorkMatch(RecordModel):
    """Model for an overlap between a candidate text and one corpus work."""
    work_id: str = Field(..., description="ID of the matched work")
    work_title: Optional[str] = Field(default=None, description="Title of the matched work")
    similarity: float = Field(..., ge=0.0, le=1.0, description="Containment ratio, rounded to 3 decimals")
    overlapping_phrases: List[str] = Field(default_factory=list, description="Sample of shared shingles")

class PlagiarismResult(RecordModel):
    """Outcome of scanning one candidate text against the corpus."""
    is_plagiarized: bool = Field(..., description="True when score reaches the flag threshold")
    score: int = Field(..., ge=0, le=100, description="Best containment as a percentage")
    details: str = Field(default=NO_MATCH_DETAILS, description="Human-readable summary")
    matches: List[WorkMatch] = Field(default_factory=list, description="Corpus works above the match threshold")

class SubmissionResponse(RecordModel):
    """Response model for an accepted submission."""
    work: Work
    plagiarism_result: PlagiarismResult

class ErrorResponse(RecordModel):
    """Error response model."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")

class HealthResponse(RecordModel):
    """Health check response model."""
    status: str = Field(..., description="Overall service status")
    version: str = Field(..., description="API version")
    components: Dict[str, Any] = Field(..., description="Component health status")
