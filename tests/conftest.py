import pytest

from workledger.core.licenses import LicenseRegistry
from workledger.core.storage import LedgerStorage
from workledger.core.works import WorkStore
from workledger.services.notifications import NotificationDispatcher
from workledger.services.similarity import SimilarityEngine, SimilarityThresholds
from workledger.services.submission import SubmissionService


class RecordingNotifier:
    def __init__(self):
        self.flagged = []
        self.issued = []

    def notify_plagiarism_flagged(self, email, work_title, work_id, result, matched_works):
        self.flagged.append((email, work_title, work_id, result, matched_works))

    def notify_license_issued(self, email, work_title, license):
        self.issued.append((email, work_title, license))


@pytest.fixture
def storage(tmp_path):
    storage = LedgerStorage(str(tmp_path / "data"))
    storage.load_all()
    return storage


@pytest.fixture
def work_store(storage):
    return WorkStore(storage)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier)


@pytest.fixture
def registry(storage, work_store, dispatcher):
    return LicenseRegistry(storage, work_store, dispatcher)


@pytest.fixture
def engine():
    return SimilarityEngine(SimilarityThresholds())


@pytest.fixture
def submissions(work_store, engine, dispatcher):
    return SubmissionService(work_store, engine, dispatcher, min_content_length=50)
