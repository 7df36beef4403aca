import structlog
from typing import List, Optional

from workledger import config
from workledger.core.errors import PlagiarismRejected, ValidationError
from workledger.core.works import WorkStore
from workledger.models.similarity import PlagiarismResult, SubmissionResponse
from workledger.models.work import Work, WorkPatch
from workledger.services.extraction import extract_text
from workledger.services.notifications import NotificationDispatcher, WorkFlagged
from workledger.services.similarity import SimilarityEngine

logger = structlog.get_logger()

class SubmissionService:
    """Admits new works only after they clear the similarity scan, and handles author edits."""

    def __init__(self,
                 work_store: WorkStore,
                 engine: SimilarityEngine,
                 dispatcher: Optional[NotificationDispatcher] = None,
                 min_content_length: int = config.MIN_CONTENT_LENGTH):
        self.work_store = work_store
        self.engine = engine
        self.dispatcher = dispatcher
        self.min_content_length = min_content_length

    def submit_work(self, owner_id: str, title: str, content: str, email: Optional[str] = None) -> SubmissionResponse:
        """
        Scan a submission against other authors' works and store it if it passes.

        Raises:
            ValidationError: title/content missing or content too short
            PlagiarismRejected: score reached the flag threshold; nothing stored
        """
        title = (title or "").strip()
        if not title or not content or not content.strip():
            missing = "title" if not title else "content"
            raise ValidationError("Title and content are required", field=missing)
        if len(content.strip()) < self.min_content_length:
            raise ValidationError(
                f"Content must be at least {self.min_content_length} characters long", field="content")

        corpus = self.work_store.list_all_works()
        result = self.engine.score(content, owner_id, corpus)

        if result.is_plagiarized:
            logger.warning("Submission rejected as plagiarized",
                          owner_id=owner_id, title=title, score=result.score,
                          matched_work_ids=[m.work_id for m in result.matches])
            self._publish_flagged(email, title, None, result, corpus)
            raise PlagiarismRejected(result)

        work = self.work_store.create_work(owner_id, title, content, result.score)
        logger.info("Submission accepted", work_id=work.id, owner_id=owner_id, score=result.score)
        return SubmissionResponse(work=work, plagiarism_result=result)

    def submit_document(self,
                        owner_id: str,
                        title: str,
                        data: bytes,
                        declared_type: str,
                        email: Optional[str] = None) -> SubmissionResponse:
        """Extract text from an uploaded document and submit it."""
        if not title or not title.strip():
            raise ValidationError("Title is required", field="title")
        if not data:
            raise ValidationError("File is required", field="file")

        content = extract_text(data, declared_type)
        return self.submit_work(owner_id, title, content, email=email)

    def check_work(self, work_id: str, owner_id: str, email: Optional[str] = None) -> PlagiarismResult:
        """Re-scan a stored work against the current corpus. Read-only."""
        work = self.work_store.get_work(work_id, owner_id)
        corpus = self.work_store.list_all_works()
        result = self.engine.score(work.content, owner_id, corpus)

        if result.is_plagiarized:
            self._publish_flagged(email, work.title, work.id, result, corpus)
        return result

    def update_work(self,
                    work_id: str,
                    owner_id: str,
                    title: Optional[str] = None,
                    content: Optional[str] = None) -> Work:
        """
        Author edit of title and/or content.

        Edits of a licensed work are accepted and leave the license untouched.
        """
        changes = {}
        if title is not None:
            changes["title"] = title
        if content is not None:
            changes["content"] = content
        if not changes:
            raise ValidationError("Nothing to update", field="patch")

        return self.work_store.update_work(work_id, WorkPatch(**changes), requesting_owner_id=owner_id)

    def _publish_flagged(self,
                         email: Optional[str],
                         work_title: str,
                         work_id: Optional[str],
                         result: PlagiarismResult,
                         corpus: List[Work]) -> None:
        if not email or self.dispatcher is None or not result.matches:
            return
        matched_ids = {m.work_id for m in result.matches}
        matched_works = [w for w in corpus if w.id in matched_ids]
        self.dispatcher.publish(WorkFlagged(
            email=email,
            work_title=work_title,
            work_id=work_id,
            result=result,
            matched_works=matched_works,
        ))
