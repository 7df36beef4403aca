import structlog
from typing import List, Optional

from workledger.core.errors import NotFoundError, PersistenceError, ValidationError
from workledger.core.storage import LedgerStorage, RecordCollection
from workledger.core.utils import new_record_id, utcnow
from workledger.core.works import WorkStore
from workledger.models.license import License, LicenseMetadata, PublicLicense
from workledger.models.work import WorkPatch
from workledger.services.notifications import LicenseIssued

logger = structlog.get_logger()

class LicenseRegistry:
    """
    Canonical record of issued licenses, at most one per work.

    Issuance is a compound operation (create the license, flag the work)
    performed under the registry lock, so concurrent requests for the same
    work always converge on the first license.
    """

    def __init__(self, storage: LedgerStorage, work_store: WorkStore, dispatcher=None):
        self.licenses: RecordCollection[License] = storage.licenses
        self.work_store = work_store
        self.dispatcher = dispatcher

    def issue_license(self,
                      work_id: str,
                      owner_id: str,
                      metadata: Optional[LicenseMetadata] = None,
                      email: Optional[str] = None) -> License:
        """
        Issue the license for a work, or return the one already issued.

        Args:
            work_id: ID of the work to license
            owner_id: Caller; must own the work
            metadata: Author details copied onto a new license
            email: Where to send the issuance notice, if known

        Returns:
            The license for work_id; unchanged if it already existed
        """
        metadata = metadata or LicenseMetadata()

        with self.licenses.lock:
            work = self.work_store.get_work(work_id, owner_id)

            existing = self._find_by_work(work_id)
            if existing is not None:
                logger.info("License already issued", work_id=work_id, license_id=existing.id)
                return existing

            license = License(
                id=new_record_id(),
                work_id=work_id,
                owner_id=owner_id,
                issued_at=utcnow(),
                is_active=True,
                **metadata.model_dump(),
            )
            self.licenses.append(license, flush=False)

            try:
                self.work_store.update_work(
                    work_id, WorkPatch(is_licensed=True, license_id=license.id))
            except PersistenceError:
                # Work is flagged in memory; only its flush failed. Keep the license.
                logger.error("License issued but work flag was not flushed",
                            work_id=work_id, license_id=license.id)
                self.licenses.save_all()
                raise
            except Exception as e:
                logger.error("Failed to flag work as licensed, rolling back license",
                            work_id=work_id, license_id=license.id, error=str(e))
                self.licenses.remove(license.id, flush=False)
                raise

            self.licenses.save_all()

        logger.info("License issued", work_id=work_id, license_id=license.id, owner_id=owner_id)

        if email and self.dispatcher is not None:
            self.dispatcher.publish(LicenseIssued(email=email, work_title=work.title, license=license))

        return license

    def get_user_licenses(self, owner_id: str) -> List[License]:
        return self.licenses.find(lambda license: license.owner_id == owner_id)

    def get_license(self, license_id: str, requesting_owner_id: str) -> License:
        """Full license view, owner only."""
        license = self.licenses.get(license_id)
        if license is None or license.owner_id != requesting_owner_id:
            raise NotFoundError("License", license_id)
        return license

    def verify_license(self, license_id: str) -> PublicLicense:
        """Public lookup exposing only non-sensitive fields."""
        license = self.licenses.get(license_id) if license_id else None
        if license is None:
            raise NotFoundError("License", license_id)
        return license.to_public()

    def attach_download_url(self, license_id: str, url: str) -> License:
        """Record where the rendered certificate lives. Latest write wins."""
        if not url or not url.strip():
            raise ValidationError("Download URL is required", field="url")

        updated = self.licenses.update(
            license_id, lambda license: license.model_copy(update={"download_url": url.strip()}))
        if updated is None:
            raise NotFoundError("License", license_id)

        logger.info("Download URL attached", license_id=license_id)
        return updated

    def _find_by_work(self, work_id: str) -> Optional[License]:
        found = self.licenses.find(lambda license: license.work_id == work_id)
        return found[0] if found else None
