"""
Listing filters, pagination, single-topic aggregate and revision history.
"""
import uuid

import pytest
from sqlalchemy import inspect

from topic_engine.config import settings
from topic_engine.models.types import utcnow
from topic_engine.services import workflow_engine as engine
from topic_engine.services.errors import InvalidInput, NotFound
from topic_engine.services.listing import get_topic, get_topic_history, list_topics, normalize_pagination

AUTHOR = "author-1"
REVIEWER = "reviewer-1"


def _create(db, title, **extra):
    payload = {"title": title, "content": {"type": "doc"}}
    payload.update(extra)
    return engine.create_topic(db, payload, AUTHOR)


def _publish(db, topic):
    engine.submit_for_review(db, topic.id, AUTHOR)
    engine.record_review_decision(db, topic.id, REVIEWER, "approve")
    return engine.publish_topic(db, topic.id, REVIEWER)


def _titles(page):
    return sorted(t.title for t in page.items)


def test_list_defaults_to_latest_versions(db):
    published = _publish(db, _create(db, "Fractions"))
    engine.create_revision(db, published.id, AUTHOR)
    _create(db, "Decimals")

    page = list_topics(db)
    assert page.total == 2
    assert _titles(page) == ["Decimals", "Fractions"]
    assert all(t.is_latest for t in page.items)

    everything = list_topics(db, {"isLatest": "false"})
    assert everything.total == 3


def test_list_filters_by_status_and_language(db):
    _publish(db, _create(db, "Fractions"))
    _create(db, "Fractions (fr)", language="fr")
    _create(db, "Decimals")

    assert _titles(list_topics(db, {"status": "PUBLISHED"})) == ["Fractions"]
    assert _titles(list_topics(db, {"status": "draft,published"})) == ["Decimals", "Fractions", "Fractions (fr)"]
    assert _titles(list_topics(db, {"language": "FR"})) == ["Fractions (fr)"]


def test_list_filters_by_group_tags_and_search(db):
    en = _create(db, "Fractions", tags=["numeracy"], summary="Parts of a whole")
    _create(db, "Fractions (fr)", language="fr", groupId=str(en.group_id))
    _create(db, "Decimals", tags=["decimals"])

    assert _titles(list_topics(db, {"baseTopicId": str(en.group_id)})) == ["Fractions", "Fractions (fr)"]
    assert _titles(list_topics(db, {"tag": "numeracy"})) == ["Fractions", "Fractions (fr)"]
    tag_id = en.group.tags[0].id
    assert _titles(list_topics(db, {"tagIds": [str(tag_id)]})) == ["Fractions", "Fractions (fr)"]
    assert _titles(list_topics(db, {"search": "WHOLE"})) == ["Fractions"]
    assert _titles(list_topics(db, {"search": "cim"})) == ["Decimals"]
    assert list_topics(db, {"search": "100%"}).total == 0


def test_list_hides_archived_groups(db):
    kept = _create(db, "Fractions")
    archived = _create(db, "Old topic")
    archived.group.archived_at = utcnow()
    db.commit()

    assert _titles(list_topics(db)) == ["Fractions"]
    assert _titles(list_topics(db, {"archived": "true"})) == ["Old topic"]
    assert kept.group.archived_at is None


def test_list_pagination(db):
    for i in range(5):
        _create(db, f"Topic {i}")
    page = list_topics(db, page=2, page_size=2)
    assert page.total == 5
    assert page.page == 2
    assert page.page_size == 2
    assert len(page.items) == 2
    assert len(list_topics(db, page=3, page_size=2).items) == 1


def test_list_newest_first(db):
    older = _create(db, "Older")
    newer = _create(db, "Newer")
    assert [t.id for t in list_topics(db).items] == [newer.id, older.id]
    engine.update_topic(db, older.id, {"summary": "touched"}, AUTHOR)
    assert [t.id for t in list_topics(db).items] == [older.id, newer.id]


def test_list_rejects_malformed_identifiers(db):
    with pytest.raises(InvalidInput):
        list_topics(db, {"groupId": "not-a-uuid"})


def test_normalize_pagination_clamps():
    assert normalize_pagination() == (1, settings.default_page_size)
    assert normalize_pagination(0, 0) == (1, 1)
    assert normalize_pagination("3", "10") == (3, 10)
    assert normalize_pagination(-1, 10_000) == (1, settings.max_page_size)
    assert normalize_pagination("x", "y") == (1, settings.default_page_size)


def test_get_topic_loads_aggregate(db):
    topic = _create(
        db,
        "Fractions",
        tags=["numeracy"],
        alignments=[{"framework": "CCSS", "standardCode": "3.NF.A.1"}],
    )
    engine.add_comment(db, topic.id, REVIEWER, "Add a diagram")
    engine.submit_for_review(db, topic.id, AUTHOR)
    engine.record_review_decision(db, topic.id, REVIEWER, "approve")
    db.expunge_all()

    loaded = get_topic(db, str(topic.id))
    assert [t.name for t in loaded.group.tags] == ["numeracy"]
    assert [a.standard_code for a in loaded.group.alignments] == ["3.NF.A.1"]
    assert [c.body for c in loaded.comments] == ["Add a diagram"]
    assert [r.decision for r in loaded.reviews] == ["APPROVED"]
    assert [e.to_status for e in loaded.workflow_events] == ["DRAFT", "IN_REVIEW", "APPROVED"]


def test_get_topic_not_found(db):
    with pytest.raises(NotFound):
        get_topic(db, uuid.uuid4())
    with pytest.raises(NotFound):
        get_topic(db, "garbage")


def test_history_is_per_language_newest_first(db):
    v1 = _publish(db, _create(db, "Fractions"))
    v2 = _publish(db, engine.create_revision(db, v1.id, AUTHOR))
    v3 = engine.create_revision(db, v2.id, AUTHOR)
    _create(db, "Fractions (fr)", language="fr", groupId=str(v1.group_id))

    history = get_topic_history(db, v1.id)
    assert [t.version for t in history] == [3, 2, 1]
    assert [t.id for t in history] == [v3.id, v2.id, v1.id]
    assert {t.language for t in history} == {"en"}


def test_history_does_not_load_version_aggregates(db):
    v1 = _publish(db, _create(db, "Fractions"))
    engine.add_comment(db, v1.id, REVIEWER, "Check the examples")
    engine.create_revision(db, v1.id, AUTHOR)
    db.expunge_all()

    history = get_topic_history(db, str(v1.id))
    source = next(t for t in history if t.id == v1.id)
    unloaded = inspect(source).unloaded
    assert {"reviews", "workflow_events", "comments"} <= unloaded
    assert [a.tag.name for a in source.group.tag_assignments] == []


def test_history_not_found(db):
    with pytest.raises(NotFound):
        get_topic_history(db, uuid.uuid4())
    with pytest.raises(NotFound) as exc:
        get_topic_history(db, "garbage")
    assert exc.value.code == "TOPIC_NOT_FOUND"
