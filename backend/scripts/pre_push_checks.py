#!/usr/bin/env python3
"""
Pre-push / production readiness checks.
Run from backend dir with project venv active: python scripts/pre_push_checks.py
Uses DATABASE_URL from env or .env; point it at a scratch SQLite file, the round trip writes rows.
"""
import sys
import uuid
from pathlib import Path

BACKEND = Path(__file__).resolve().parent.parent
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))


def check_imports():
    from topic_engine.main import app  # noqa: F401
    from topic_engine.models.enums import TopicStatus
    from topic_engine.services.payloads import TITLE_MAX_LENGTH, SUMMARY_MAX_LENGTH
    assert TITLE_MAX_LENGTH == 240
    assert SUMMARY_MAX_LENGTH == 560
    assert "ARCHIVED" in TopicStatus.__members__
    return "imports"


def check_reconcile():
    from topic_engine.services.reconcile import reconcile
    diff = reconcile({"a", "b"}, {"b", "c"})
    assert diff.to_add == {"c"} and diff.to_remove == {"a"}
    assert reconcile({"a"}, {"a"}).is_noop
    return "reconcile"


def check_production_secret():
    from topic_engine.config import settings
    if settings.is_production and settings.uses_default_secret:
        raise RuntimeError("SECRET_KEY is still the default while ENV=production")
    return "production_secret"


def check_init_db():
    from topic_engine.database import init_db
    init_db()
    return "init_db"


def check_workflow_round_trip():
    from topic_engine.database import SessionLocal, is_sqlite
    from topic_engine.services import workflow_engine as engine
    from topic_engine.services.errors import Conflict

    if not is_sqlite():
        return "workflow_round_trip (skipped: not sqlite)"
    db = SessionLocal()
    try:
        actor = f"pre-push-{uuid.uuid4().hex[:8]}"
        topic = engine.create_topic(db, {"title": "Pre-push check", "content": {"type": "doc"}}, actor)
        engine.submit_for_review(db, topic.id, actor)
        engine.record_review_decision(db, topic.id, actor, "approve")
        engine.publish_topic(db, topic.id, actor)
        draft = engine.create_revision(db, topic.id, actor)
        assert draft.version == 2 and draft.is_latest
        try:
            engine.create_revision(db, topic.id, actor)
        except Conflict:
            pass
        else:
            raise AssertionError("second revision of a stale version must conflict")
    finally:
        db.close()
    return "workflow_round_trip"


def main():
    checks = [check_imports, check_reconcile, check_production_secret, check_init_db, check_workflow_round_trip]
    for fn in checks:
        try:
            name = fn()
            print(f"OK {name}")
        except Exception as e:
            print(f"FAIL {fn.__name__}: {e}")
            return 1
    print("All pre-push checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
