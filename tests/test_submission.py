import pytest

from workledger.core.errors import NotFoundError, PlagiarismRejected, UnsupportedFormatError, ValidationError

POEM_A = "The quiet river bends beneath the silver moon while herons wait in reeds and night winds hum"
POEM_B = "Morning light spills over tin roofs as sparrows argue about crumbs beside the bakery door"

def test_submit_then_reject_copy(submissions, work_store):
    accepted = submissions.submit_work("u1", "Poem A", POEM_A)
    assert accepted.plagiarism_result.score == 0
    assert accepted.work.plagiarism_score == 0
    assert not accepted.work.is_licensed

    with pytest.raises(PlagiarismRejected) as exc_info:
        submissions.submit_work("u2", "Copy", POEM_A)
    result = exc_info.value.result
    assert result.is_plagiarized
    assert result.score == 100
    assert result.matches[0].work_id == accepted.work.id

    assert len(work_store.list_all_works()) == 1
    assert work_store.list_works("u2") == []

def test_owner_can_resubmit_own_text(submissions):
    submissions.submit_work("u1", "Poem A", POEM_A)
    again = submissions.submit_work("u1", "Poem A again", POEM_A)
    assert again.plagiarism_result.score == 0

def test_unrelated_work_is_accepted(submissions):
    submissions.submit_work("u1", "Poem A", POEM_A)
    accepted = submissions.submit_work("u2", "Poem B", POEM_B)
    assert accepted.plagiarism_result.matches == []

def test_validation(submissions):
    with pytest.raises(ValidationError) as exc_info:
        submissions.submit_work("u1", "  ", POEM_A)
    assert exc_info.value.field == "title"

    with pytest.raises(ValidationError) as exc_info:
        submissions.submit_work("u1", "Poem", "")
    assert exc_info.value.field == "content"

    with pytest.raises(ValidationError) as exc_info:
        submissions.submit_work("u1", "Poem", "Too short to count")
    assert exc_info.value.field == "content"

def test_rejection_notifies_author(submissions, dispatcher, notifier):
    original = submissions.submit_work("u1", "Poem A", POEM_A)
    with pytest.raises(PlagiarismRejected):
        submissions.submit_work("u2", "Copy", POEM_A, email="u2@example.com")

    assert dispatcher.drain() == 1
    email, title, work_id, result, matched_works = notifier.flagged[0]
    assert (email, title, work_id) == ("u2@example.com", "Copy", None)
    assert [w.id for w in matched_works] == [original.work.id]

def test_submit_document(submissions):
    accepted = submissions.submit_document("u1", "Poem A", POEM_A.encode("utf-8"), "poem.txt")
    assert accepted.work.content == POEM_A

    with pytest.raises(UnsupportedFormatError):
        submissions.submit_document("u1", "Poem B", b"PK\x03\x04", "application/zip")
    with pytest.raises(ValidationError):
        submissions.submit_document("u1", "", POEM_A.encode("utf-8"), "text/plain")

def test_check_work(submissions, dispatcher, notifier):
    original = submissions.submit_work("u1", "Poem A", POEM_A)
    mine = submissions.submit_work("u2", "Poem B", POEM_B)

    assert submissions.check_work(mine.work.id, "u2", email="u2@example.com").score == 0
    assert dispatcher.drain() == 0

    submissions.update_work(mine.work.id, "u2", content=POEM_A)
    result = submissions.check_work(mine.work.id, "u2", email="u2@example.com")
    assert result.is_plagiarized
    assert result.matches[0].work_id == original.work.id
    assert dispatcher.drain() == 1

    with pytest.raises(NotFoundError):
        submissions.check_work(mine.work.id, "u1")

def test_update_work(submissions, work_store):
    accepted = submissions.submit_work("u1", "Poem A", POEM_A)

    with pytest.raises(ValidationError):
        submissions.update_work(accepted.work.id, "u1")
    with pytest.raises(NotFoundError):
        submissions.update_work(accepted.work.id, "u2", title="Mine now")

    updated = submissions.update_work(accepted.work.id, "u1", title="Poem A, revised")
    assert updated.title == "Poem A, revised"
    assert updated.content == POEM_A
    assert len(work_store.get_revisions(accepted.work.id, "u1")) == 1

def test_partial_copy_is_rejected(submissions):
    original = submissions.submit_work("u1", "Poem A", POEM_A)
    # first ten words of Poem A followed by new text: 8 of 19 shingles shared
    partial = "The quiet river bends beneath the silver moon while herons glance at passing boats full of apples under a grey sky"

    with pytest.raises(PlagiarismRejected) as exc_info:
        submissions.submit_work("u2", "Borrowed", partial)
    result = exc_info.value.result
    assert result.score >= 40
    assert original.work.id in [m.work_id for m in result.matches]

def test_update_rejects_empty_title(submissions, work_store):
    accepted = submissions.submit_work("u1", "Poem A", POEM_A)

    with pytest.raises(ValidationError) as exc_info:
        submissions.update_work(accepted.work.id, "u1", title="", content=POEM_A + " more")
    assert exc_info.value.field == "title"

    with pytest.raises(ValidationError):
        submissions.update_work(accepted.work.id, "u1", content="")

    current = work_store.get_work(accepted.work.id, "u1")
    assert (current.title, current.content) == ("Poem A", POEM_A)
    assert work_store.get_revisions(accepted.work.id, "u1") == []
