"""
Workflow engine against a real SQLite session: the draft -> review -> publish -> revise lifecycle,
edit guards, latest-pointer uniqueness, audit rows, and error kinds.
"""
import threading
import uuid

import pytest
from sqlalchemy import func, select

from topic_engine import metrics
from topic_engine.database import SessionLocal
from topic_engine.models.comment import TopicComment
from topic_engine.models.enums import TopicStatus
from topic_engine.models.tag import Tag, TopicGroupTag
from topic_engine.models.topic_version import TopicVersion
from topic_engine.models.workflow import ReviewRecord, WorkflowEvent
from topic_engine.services import workflow_engine as engine
from topic_engine.services.errors import Conflict, InvalidInput, InvalidState, NotFound

AUTHOR = "author-1"
REVIEWER = "reviewer-1"


def _payload(**overrides):
    data = {"title": "Fractions", "language": "en", "content": {"type": "doc", "content": []}}
    data.update(overrides)
    return data


def _published(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    engine.submit_for_review(db, topic.id, AUTHOR)
    engine.record_review_decision(db, topic.id, REVIEWER, "approve")
    return engine.publish_topic(db, topic.id, REVIEWER)


def _events(db, topic_id):
    stmt = select(WorkflowEvent).where(WorkflowEvent.topic_version_id == topic_id).order_by(WorkflowEvent.created_at)
    return list(db.execute(stmt).scalars())


def _latest_count(db, group_id, language="en"):
    return db.scalar(
        select(func.count()).select_from(TopicVersion).where(
            TopicVersion.group_id == group_id,
            TopicVersion.language == language,
            TopicVersion.is_latest.is_(True),
        )
    )


def _run_concurrently(monkeypatch, call):
    """
    Run call(session) in two threads, each with its own session. Both pause right after reading the
    latest version, so neither sees the other's write before acting. Returns new version ids or errors.
    """
    barrier = threading.Barrier(2, timeout=10)
    lock_latest = engine._lock_latest

    def paused_lock_latest(db, group_id, language):
        latest = lock_latest(db, group_id, language)
        barrier.wait()
        return latest

    monkeypatch.setattr(engine, "_lock_latest", paused_lock_latest)
    outcomes = []

    def worker():
        session = SessionLocal()
        try:
            outcomes.append(call(session).id)
        except Exception as e:
            outcomes.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


def _split_outcomes(outcomes):
    created = [o for o in outcomes if isinstance(o, uuid.UUID)]
    failed = [o for o in outcomes if not isinstance(o, uuid.UUID)]
    return created, failed


def test_create_draft(db):
    topic = engine.create_topic(db, _payload(summary="Parts of a whole"), AUTHOR)
    assert topic.status == TopicStatus.DRAFT.value
    assert topic.version == 1
    assert topic.is_latest is True
    assert topic.supersedes_id is None
    assert topic.created_by == AUTHOR
    assert topic.content_format == "JSON"
    assert topic.group.default_language == "en"
    assert topic.group.summary == "Parts of a whole"
    events = _events(db, topic.id)
    assert [(e.from_status, e.to_status) for e in events] == [(None, "DRAFT")]


def test_draft_to_published_lifecycle(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    topic = engine.submit_for_review(db, topic.id, AUTHOR)
    assert topic.status == "IN_REVIEW"
    assert topic.submitted_by == AUTHOR
    assert topic.submitted_at is not None

    topic = engine.record_review_decision(db, topic.id, REVIEWER, "approve", comment="looks good")
    assert topic.status == "APPROVED"
    assert topic.reviewed_by == REVIEWER

    topic = engine.publish_topic(db, topic.id, REVIEWER)
    assert topic.status == "PUBLISHED"
    assert topic.published_at is not None
    assert topic.published_by == REVIEWER
    assert topic.is_latest is True

    reviews = db.execute(select(ReviewRecord).where(ReviewRecord.topic_version_id == topic.id)).scalars().all()
    assert [(r.decision, r.comment) for r in reviews] == [("APPROVED", "looks good")]


def test_changes_requested_then_resubmit(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    engine.submit_for_review(db, topic.id, AUTHOR)
    topic = engine.record_review_decision(db, topic.id, REVIEWER, "changes_requested", comment="fix intro")
    assert topic.status == "CHANGES_REQUESTED"
    assert topic.notes == "fix intro"

    topic = engine.update_topic(db, topic.id, {"title": "Fractions, revised"}, AUTHOR)
    assert topic.title == "Fractions, revised"
    assert topic.status == "CHANGES_REQUESTED"

    topic = engine.submit_for_review(db, topic.id, AUTHOR)
    assert topic.status == "IN_REVIEW"


def test_revision_of_published(db):
    original = _published(db)
    draft = engine.create_revision(db, original.id, AUTHOR, notes="v2 edits")
    db.refresh(original)

    assert draft.version == 2
    assert draft.status == "DRAFT"
    assert draft.is_latest is True
    assert draft.supersedes_id == original.id
    assert draft.notes == "v2 edits"
    assert draft.title == original.title
    assert draft.content == original.content
    assert original.is_latest is False
    assert original.status == "PUBLISHED"
    assert _latest_count(db, original.group_id) == 1
    assert [(e.from_status, e.to_status) for e in _events(db, draft.id)] == [("PUBLISHED", "DRAFT")]


def test_second_revision_on_stale_version_conflicts(db):
    original = _published(db)
    engine.create_revision(db, original.id, AUTHOR)
    before = metrics.snapshot()["revision_conflicts_total"]

    with pytest.raises(Conflict) as exc_info:
        engine.create_revision(db, original.id, AUTHOR)
    assert exc_info.value.code == "TOPIC_REVISION_CONFLICT"
    assert exc_info.value.status_code == 409
    assert metrics.snapshot()["revision_conflicts_total"] == before + 1
    assert _latest_count(db, original.group_id) == 1


def test_concurrent_revisions_of_one_source_only_one_wins(db, monkeypatch):
    original = _published(db)
    source_id, group_id = original.id, original.group_id
    before = metrics.snapshot()["revision_conflicts_total"]

    outcomes = _run_concurrently(monkeypatch, lambda s: engine.create_revision(s, source_id, AUTHOR))

    created, failed = _split_outcomes(outcomes)
    assert len(created) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], Conflict)
    assert failed[0].code in ("TOPIC_LATEST_CONFLICT", "TOPIC_REVISION_CONFLICT")
    assert metrics.snapshot()["revision_conflicts_total"] == before + 1

    db.expire_all()
    assert _latest_count(db, group_id) == 1
    winner = db.get(TopicVersion, created[0])
    assert winner.is_latest is True
    assert winner.supersedes_id == source_id
    assert db.scalar(select(func.count()).select_from(TopicVersion)) == 2


def test_tag_binding_removed_but_catalog_kept(db):
    topic = engine.create_topic(db, _payload(tags=["fractions", "numeracy"]), AUTHOR)
    assert sorted(t.name for t in topic.group.tags) == ["fractions", "numeracy"]

    topic = engine.update_topic(db, topic.id, {"tags": ["fractions"]}, AUTHOR)
    assert [t.name for t in topic.group.tags] == ["fractions"]
    bindings = db.execute(select(TopicGroupTag).where(TopicGroupTag.group_id == topic.group_id)).scalars().all()
    assert len(bindings) == 1
    assert db.execute(select(Tag).where(Tag.name == "numeracy")).scalar_one() is not None


@pytest.mark.parametrize("status_path", [["submit"], ["submit", "approve"], ["submit", "approve", "publish"]])
def test_update_rejected_outside_editable_statuses(db, status_path):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    for step in status_path:
        if step == "submit":
            engine.submit_for_review(db, topic.id, AUTHOR)
        elif step == "approve":
            engine.record_review_decision(db, topic.id, REVIEWER, "approve")
        elif step == "publish":
            engine.publish_topic(db, topic.id, REVIEWER)
    db.refresh(topic)
    status_before, title_before = topic.status, topic.title

    with pytest.raises(InvalidState) as exc_info:
        engine.update_topic(db, topic.id, {"title": "Changed"}, AUTHOR)
    err = exc_info.value
    assert err.code == "TOPIC_UPDATE_INVALID_STATUS"
    assert err.details == {"topic_id": str(topic.id), "status": status_before, "attempted": "update"}
    assert status_before in err.message

    db.expire_all()
    stored = db.get(TopicVersion, topic.id)
    assert stored.title == title_before
    assert stored.status == status_before


def test_submit_requires_editable_status(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    engine.submit_for_review(db, topic.id, AUTHOR)
    with pytest.raises(InvalidState) as exc_info:
        engine.submit_for_review(db, topic.id, AUTHOR)
    assert exc_info.value.status == "IN_REVIEW"


def test_publish_requires_approved(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    with pytest.raises(InvalidState) as exc_info:
        engine.publish_topic(db, topic.id, REVIEWER)
    assert "only approved topics can be published" in exc_info.value.message
    assert exc_info.value.code == "TOPIC_PUBLISH_INVALID_STATUS"


def test_review_requires_in_review(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    with pytest.raises(InvalidState):
        engine.record_review_decision(db, topic.id, REVIEWER, "approve")


def test_revision_requires_published(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    with pytest.raises(InvalidState) as exc_info:
        engine.create_revision(db, topic.id, AUTHOR)
    assert exc_info.value.attempted == "revise"


def test_invalid_decision_leaves_topic_in_review(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    engine.submit_for_review(db, topic.id, AUTHOR)
    with pytest.raises(InvalidInput) as exc_info:
        engine.record_review_decision(db, topic.id, REVIEWER, "maybe")
    assert exc_info.value.code == "TOPIC_REVIEW_DECISION_INVALID"
    db.expire_all()
    assert db.get(TopicVersion, topic.id).status == "IN_REVIEW"
    assert db.scalar(select(func.count()).select_from(ReviewRecord)) == 0


def test_reviewer_updates_limited_to_descriptive_fields(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    engine.submit_for_review(db, topic.id, AUTHOR)

    with pytest.raises(InvalidInput) as exc_info:
        engine.record_review_decision(db, topic.id, REVIEWER, "approve", updates={"content": {"type": "x"}})
    assert exc_info.value.code == "TOPIC_REVIEW_UPDATES_INVALID"

    topic = engine.record_review_decision(
        db, topic.id, REVIEWER, "approve", updates={"summary": "Tightened by reviewer"}, tags=["numeracy"]
    )
    assert topic.status == "APPROVED"
    assert topic.summary == "Tightened by reviewer"
    assert [t.name for t in topic.group.tags] == ["numeracy"]


def test_every_transition_writes_exactly_one_event(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    engine.update_topic(db, topic.id, {"summary": "edit only"}, AUTHOR)
    engine.submit_for_review(db, topic.id, AUTHOR)
    engine.record_review_decision(db, topic.id, REVIEWER, "changes_requested", comment="again")
    engine.submit_for_review(db, topic.id, AUTHOR)
    engine.record_review_decision(db, topic.id, REVIEWER, "approve")
    engine.publish_topic(db, topic.id, REVIEWER)

    transitions = [(e.from_status, e.to_status) for e in _events(db, topic.id)]
    assert transitions == [
        (None, "DRAFT"),
        ("DRAFT", "IN_REVIEW"),
        ("IN_REVIEW", "CHANGES_REQUESTED"),
        ("CHANGES_REQUESTED", "IN_REVIEW"),
        ("IN_REVIEW", "APPROVED"),
        ("APPROVED", "PUBLISHED"),
    ]
    decisions = [e.decision for e in _events(db, topic.id)]
    assert decisions == [None, None, "CHANGES_REQUESTED", None, "APPROVED", None]


def test_version_chain_is_monotonic(db):
    v1 = _published(db)
    v2 = engine.create_revision(db, v1.id, AUTHOR)
    engine.submit_for_review(db, v2.id, AUTHOR)
    engine.record_review_decision(db, v2.id, REVIEWER, "approve")
    engine.publish_topic(db, v2.id, REVIEWER)
    v3 = engine.create_revision(db, v2.id, AUTHOR)

    versions = []
    node = db.get(TopicVersion, v3.id)
    while node is not None:
        versions.append(node.version)
        node = node.supersedes
    assert versions == [3, 2, 1]
    assert _latest_count(db, v1.group_id) == 1


def test_create_in_existing_group_adds_language_variant(db):
    en = engine.create_topic(db, _payload(tags=["fractions"]), AUTHOR)
    fr = engine.create_topic(db, _payload(title="Fractions (fr)", language="fr", groupId=str(en.group_id)), AUTHOR)

    assert fr.group_id == en.group_id
    assert fr.version == 1
    assert fr.is_latest is True
    assert [t.name for t in fr.group.tags] == ["fractions"]
    assert _latest_count(db, en.group_id, "en") == 1
    assert _latest_count(db, en.group_id, "fr") == 1


def test_create_in_existing_group_and_language_chains_on_latest(db):
    first = engine.create_topic(db, _payload(), AUTHOR)
    second = engine.create_topic(db, _payload(title="Fractions again", baseTopicId=str(first.group_id)), AUTHOR)
    db.refresh(first)

    assert second.version == 2
    assert second.supersedes_id == first.id
    assert first.is_latest is False
    assert _latest_count(db, first.group_id) == 1


def test_concurrent_creates_in_one_group_and_language_only_one_wins(db, monkeypatch):
    first = engine.create_topic(db, _payload(), AUTHOR)
    group_id = first.group_id

    outcomes = _run_concurrently(
        monkeypatch,
        lambda s: engine.create_topic(s, _payload(title="Fractions again", groupId=str(group_id)), AUTHOR),
    )

    created, failed = _split_outcomes(outcomes)
    assert len(created) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], Conflict)
    assert failed[0].code == "TOPIC_LATEST_CONFLICT"

    db.expire_all()
    assert _latest_count(db, group_id) == 1
    assert db.get(TopicVersion, created[0]).version == 2
    assert db.scalar(select(func.count()).select_from(TopicVersion)) == 2


def test_create_in_existing_group_without_language_uses_group_default(db):
    fr = engine.create_topic(db, _payload(title="Fractions (fr)", language="fr"), AUTHOR)
    payload = _payload(title="Fractions encore", groupId=str(fr.group_id))
    del payload["language"]

    again = engine.create_topic(db, payload, AUTHOR)
    assert again.language == "fr"
    assert again.version == 2
    assert again.supersedes_id == fr.id
    assert _latest_count(db, fr.group_id, "fr") == 1
    assert _latest_count(db, fr.group_id, "en") == 0


def test_create_with_unknown_group_is_not_found(db):
    with pytest.raises(NotFound) as exc_info:
        engine.create_topic(db, _payload(groupId=str(uuid.uuid4())), AUTHOR)
    assert exc_info.value.code == "TOPIC_GROUP_NOT_FOUND"
    assert db.scalar(select(func.count()).select_from(TopicVersion)) == 0


def test_create_validation_errors(db):
    with pytest.raises(InvalidInput) as exc_info:
        engine.create_topic(db, {"content": {}}, AUTHOR)
    assert exc_info.value.code == "TOPIC_TITLE_REQUIRED"
    with pytest.raises(InvalidInput) as exc_info:
        engine.create_topic(db, _payload(language="english"), AUTHOR)
    assert exc_info.value.code == "TOPIC_LANGUAGE_INVALID"
    with pytest.raises(InvalidInput) as exc_info:
        engine.create_topic(db, _payload(), "  ")
    assert exc_info.value.code == "TOPIC_ACTOR_REQUIRED"


def test_html_content_round_trip(db):
    topic = engine.create_topic(db, _payload(contentFormat="html", content="<p>Half</p>"), AUTHOR)
    assert topic.content_format == "HTML"
    assert topic.content == "<p>Half</p>"


def test_unknown_topic_is_not_found(db):
    with pytest.raises(NotFound):
        engine.submit_for_review(db, uuid.uuid4(), AUTHOR)
    with pytest.raises(NotFound):
        engine.publish_topic(db, "not-a-uuid", AUTHOR)


def test_comments_do_not_change_status(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    comment = engine.add_comment(db, topic.id, REVIEWER, "  Check the second example. ", type="issue")
    assert comment.body == "Check the second example."
    assert comment.type == "ISSUE"
    assert comment.resolved_at is None

    resolved = engine.resolve_comment(db, comment.id, AUTHOR)
    assert resolved.resolved_by == AUTHOR
    assert resolved.resolved_at is not None

    db.refresh(topic)
    assert topic.status == "DRAFT"
    assert len(_events(db, topic.id)) == 1


def test_comment_validation(db):
    topic = engine.create_topic(db, _payload(), AUTHOR)
    with pytest.raises(InvalidInput) as exc_info:
        engine.add_comment(db, topic.id, REVIEWER, "   ")
    assert exc_info.value.code == "TOPIC_COMMENT_BODY_REQUIRED"
    with pytest.raises(NotFound) as exc_info:
        engine.resolve_comment(db, uuid.uuid4(), AUTHOR)
    assert exc_info.value.code == "TOPIC_COMMENT_NOT_FOUND"
    assert db.scalar(select(func.count()).select_from(TopicComment)) == 0


def test_transition_metrics(db):
    before = metrics.snapshot()["workflow_transitions_total"].get("APPROVED->PUBLISHED", 0)
    _published(db)
    after = metrics.snapshot()["workflow_transitions_total"]["APPROVED->PUBLISHED"]
    assert after == before + 1
