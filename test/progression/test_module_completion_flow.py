"""
Walks a learner through module m1 of the sample course against mocked DynamoDB tables,
from first watch tick to confirmed completion.
"""

import typing

import boto3
import pytest
from moto import mock_aws

from course_progression.dynamodb.achievements_table import AchievementsTable
from course_progression.dynamodb.module_completions_table import ModuleCompletionsTable
from course_progression.dynamodb.notifications_table import NotificationsTable
from course_progression.dynamodb.quiz_answers_table import QuizAnswersTable
from course_progression.dynamodb.video_progress_table import VideoProgressTable
from course_progression.progression.achievement_awarder import (
    AchievementAwarder,
    LearnerContext,
    ModuleNotCompletableError,
)
from course_progression.progression.gating_engine import GatingEngine, recompute
from course_progression.progression.progress_store import ProgressStore
from course_progression.utils.base_types import CourseId, ModuleId, QuestionId, VideoId
from test_utils.sample_course import LEARNER, make_course
from test_utils.tables import (
    ACHIEVEMENTS_TABLE,
    MODULE_COMPLETIONS_TABLE,
    NOTIFICATIONS_TABLE,
    QUIZ_ANSWERS_TABLE,
    REGION,
    VIDEO_PROGRESS_TABLE,
    create_all_tables,
)

CONTEXT = LearnerContext(learner_id=LEARNER, course_id=CourseId("c1"))


@pytest.fixture
def dynamodb_tables(aws_credentials) -> typing.Iterator:
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name=REGION)
        create_all_tables(dynamodb)
        yield dynamodb


@pytest.fixture
def progress_store(dynamodb_tables) -> ProgressStore:
    return ProgressStore(
        VideoProgressTable(VIDEO_PROGRESS_TABLE),
        QuizAnswersTable(QUIZ_ANSWERS_TABLE),
        ModuleCompletionsTable(MODULE_COMPLETIONS_TABLE),
    )


@pytest.fixture
def achievements_table(dynamodb_tables) -> AchievementsTable:
    return AchievementsTable(ACHIEVEMENTS_TABLE)


@pytest.fixture
def notifications_table(dynamodb_tables) -> NotificationsTable:
    return NotificationsTable(NOTIFICATIONS_TABLE)


@pytest.fixture
def awarder(progress_store, achievements_table, notifications_table) -> AchievementAwarder:
    return AchievementAwarder(progress_store, achievements_table, notifications_table)


def _engine(progress_store: ProgressStore) -> GatingEngine:
    return GatingEngine(make_course(), progress_store.get_snapshot(LEARNER))


def test_progression_through_module_and_idempotent_completion(
    progress_store: ProgressStore,
    achievements_table: AchievementsTable,
    notifications_table: NotificationsTable,
    awarder: AchievementAwarder,
):
    course = make_course()
    m1 = course.modules[0]
    v1, v2 = m1.videos

    # V1 fully watched and quiz passed: V2 unlocks
    progress_store.record_watch_progress(LEARNER, VideoId("v1"), 120, 100)
    progress_store.record_quiz_answer(LEARNER, QuestionId("q1"), True, "A")
    engine = _engine(progress_store)
    assert engine.evaluator.is_video_fully_complete(v1) is True
    assert engine.is_video_unlocked(0, 1) is True

    # V2 half watched: module cannot be completed
    progress_store.record_watch_progress(LEARNER, VideoId("v2"), 100, 50)
    engine = _engine(progress_store)
    assert engine.evaluator.is_video_fully_complete(v2) is False
    assert engine.can_complete_module(m1) is False
    with pytest.raises(ModuleNotCompletableError):
        awarder.try_complete_module(CONTEXT, course, ModuleId("m1"))

    # V2 fully watched but answered wrong: quiz gate still blocks
    progress_store.record_watch_progress(LEARNER, VideoId("v2"), 200, 100)
    progress_store.record_quiz_answer(LEARNER, QuestionId("q2"), False, "C")
    engine = _engine(progress_store)
    assert engine.evaluator.is_video_fully_complete(v2) is False

    # Answer corrected: module can be completed
    progress_store.record_quiz_answer(LEARNER, QuestionId("q2"), True, "B")
    engine = _engine(progress_store)
    assert engine.evaluator.is_video_fully_complete(v2) is True
    assert engine.can_complete_module(m1) is True

    result = awarder.try_complete_module(CONTEXT, course, ModuleId("m1"))
    assert result.alreadyCompleted is False
    assert result.achievementRecorded is True
    assert result.notificationSent is True

    snapshot = progress_store.get_snapshot(LEARNER)
    completion = snapshot.get_module_completion(ModuleId("m1"))
    assert completion is not None
    assert completion.completedAt is not None
    state = recompute(snapshot, course)
    assert state.modules[0].state == "completed"
    assert state.modules[1].state == "unlocked"

    achievements = achievements_table.get_achievements_for_learner(LEARNER)
    assert [(a.moduleId, a.achievementType) for a in achievements] == [("m1", "module_completion")]

    # Confirming again changes nothing
    second = awarder.try_complete_module(CONTEXT, course, ModuleId("m1"))
    assert second.alreadyCompleted is True
    assert len(achievements_table.get_achievements_for_learner(LEARNER)) == 1

    notifications, _ = notifications_table.get_notifications_for_learner(LEARNER)
    assert len(notifications) == 1
    assert notifications[0].notificationType == "success"
    assert notifications[0].isRead is False
