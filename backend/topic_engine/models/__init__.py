"""
SQLAlchemy models. Import here so Alembic and app can use them.
"""
from topic_engine.models.tag import Tag, TopicGroupTag
from topic_engine.models.alignment import CurriculumAlignment
from topic_engine.models.topic_group import TopicGroup
from topic_engine.models.topic_version import TopicVersion
from topic_engine.models.workflow import WorkflowEvent, ReviewRecord
from topic_engine.models.comment import TopicComment

__all__ = [
    "Tag",
    "TopicGroupTag",
    "CurriculumAlignment",
    "TopicGroup",
    "TopicVersion",
    "WorkflowEvent",
    "ReviewRecord",
    "TopicComment",
]
