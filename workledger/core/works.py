import structlog
from typing import List, Optional

from workledger.core.errors import NotFoundError, ValidationError
from workledger.core.storage import LedgerStorage, RecordCollection, flush_all
from workledger.core.utils import MonotonicClock, new_record_id
from workledger.models.license import PublicWorkSummary
from workledger.models.work import Work, WorkPatch, WorkRevision

logger = structlog.get_logger()

class WorkStore:
    """
    Canonical record of submitted works and their edit history.

    The store is the only writer of the works and revisions collections.
    Ownership is enforced here: a work owned by someone else is reported
    exactly like a work that does not exist.
    """

    def __init__(self, storage: LedgerStorage):
        self.works: RecordCollection[Work] = storage.works
        self.revisions: RecordCollection[WorkRevision] = storage.revisions
        self.clock = MonotonicClock()

    def create_work(self, owner_id: str, title: str, content: str, plagiarism_score: int) -> Work:
        """Persist a newly admitted work."""
        work = Work(
            id=new_record_id(),
            owner_id=owner_id,
            title=title,
            content=content,
            submitted_at=self.clock.now(),
            is_licensed=False,
            plagiarism_score=plagiarism_score,
        )
        created = self.works.append(work)

        logger.info("Work created",
                   work_id=created.id, owner_id=owner_id, plagiarism_score=plagiarism_score)
        return created

    def get_work(self, work_id: str, requesting_owner_id: str) -> Work:
        work = self.works.get(work_id)
        if work is None or work.owner_id != requesting_owner_id:
            raise NotFoundError("Work", work_id)
        return work

    def get_public_summary(self, work_id: str) -> Optional[PublicWorkSummary]:
        """Title and status of any work, without content or owner. None when unknown."""
        work = self.works.get(work_id)
        if work is None:
            return None
        return PublicWorkSummary(
            id=work.id, title=work.title, submitted_at=work.submitted_at, is_licensed=work.is_licensed)

    def list_works(self, owner_id: str) -> List[Work]:
        return self.works.find(lambda work: work.owner_id == owner_id)

    def list_all_works(self) -> List[Work]:
        """Unfiltered snapshot of the corpus. Internal to the similarity scan."""
        return self.works.snapshot()

    def update_work(self, work_id: str, patch: WorkPatch, requesting_owner_id: Optional[str] = None) -> Work:
        """
        Merge the supplied patch fields into a work and record one revision.

        Every successful call appends exactly one WorkRevision, including
        calls that only flip licensing state.

        Args:
            work_id: ID of the work to update
            patch: Fields to change; unset fields are left alone
            requesting_owner_id: When given, the work must belong to this owner

        Returns:
            The updated work
        """
        changes = patch.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("Nothing to update", field="patch")

        with self.works.lock, self.revisions.lock:
            def apply(current: Work) -> Work:
                if requesting_owner_id is not None and current.owner_id != requesting_owner_id:
                    raise NotFoundError("Work", work_id)
                self._validate_patch(current, changes)
                return current.model_copy(update=changes)

            updated = self.works.update(work_id, apply, flush=False)
            if updated is None:
                raise NotFoundError("Work", work_id)

            revision = WorkRevision(
                id=new_record_id(),
                work_id=updated.id,
                owner_id=updated.owner_id,
                title=updated.title,
                content=updated.content,
                updated_at=self.clock.now(),
            )
            self.revisions.append(revision, flush=False)
            flush_all(self.works, self.revisions)

        logger.info("Work updated",
                   work_id=work_id, fields=sorted(changes), revision_id=revision.id)
        return updated

    def get_revisions(self, work_id: str, requesting_owner_id: str) -> List[WorkRevision]:
        revisions = self.revisions.find(
            lambda revision: revision.work_id == work_id and revision.owner_id == requesting_owner_id
        )
        # Stable sort keeps append order for equal timestamps
        return sorted(revisions, key=lambda revision: revision.updated_at)

    @staticmethod
    def _validate_patch(current: Work, changes: dict) -> None:
        for field in ("title", "content"):
            if field in changes and (changes[field] is None or not changes[field].strip()):
                raise ValidationError(f"{field.capitalize()} cannot be empty", field=field)

        if "is_licensed" in changes:
            if changes["is_licensed"] is None:
                raise ValidationError("isLicensed must be a boolean", field="is_licensed")
            if current.is_licensed and not changes["is_licensed"]:
                raise ValidationError("A licensed work cannot return to submitted", field="is_licensed")

        if "license_id" in changes:
            if not changes["license_id"]:
                raise ValidationError("License ID cannot be empty", field="license_id")
            if current.license_id is not None and current.license_id != changes["license_id"]:
                raise ValidationError("Work already carries a license", field="license_id")

        # isLicensed is true iff licenseId is set
        is_licensed = changes.get("is_licensed", current.is_licensed)
        license_id = changes.get("license_id", current.license_id)
        if bool(is_licensed) != bool(license_id):
            raise ValidationError("isLicensed and licenseId must be set together", field="license_id")
