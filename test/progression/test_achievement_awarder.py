from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from course_progression.progression.achievement_awarder import (
    AchievementAwarder,
    LearnerContext,
    ModuleCompletionFailedError,
    ModuleNotCompletableError,
)
from course_progression.progression.progress_store import StoreUnavailableError
from course_progression.utils.base_types import CourseId, ModuleId
from test_utils.sample_course import (
    LEARNER,
    answer,
    make_course,
    make_snapshot,
    module_done,
    module_one_complete_snapshot,
    watch,
)

CONTEXT = LearnerContext(learner_id=LEARNER, course_id=CourseId("c1"))


def _client_error(code: str = "InternalServerError") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, "PutItem")


def create_achievement_awarder(
    progress_store=None,
    achievements_table=None,
    notification_sink=None,
    metrics_manager=None,
) -> AchievementAwarder:
    progress_store = progress_store or Mock()
    achievements_table = achievements_table or Mock()
    notification_sink = notification_sink or Mock()
    awarder = AchievementAwarder(
        progress_store=progress_store,
        achievements_table=achievements_table,
        notification_sink=notification_sink,
        metrics_manager=metrics_manager,
    )
    assert awarder.progress_store == progress_store
    assert awarder.achievements_table == achievements_table
    assert awarder.notification_sink == notification_sink
    return awarder


def _store_completing_m1() -> Mock:
    """Store whose snapshot has m1 ready to complete and whose completion write succeeds."""
    store = Mock()
    store.get_snapshot.return_value = module_one_complete_snapshot()
    store.record_module_completion.return_value = module_done("m1")
    return store


def test_complete_module_records_completion_achievement_and_notification():
    store = _store_completing_m1()
    achievements_table = Mock()
    achievements_table.save_achievement.return_value = True
    sink = Mock()
    metrics = Mock()

    awarder = create_achievement_awarder(store, achievements_table, sink, metrics)
    result = awarder.try_complete_module(CONTEXT, make_course(), ModuleId("m1"))

    assert result.alreadyCompleted is False
    assert result.achievementRecorded is True
    assert result.notificationSent is True
    assert result.courseCompleted is False
    assert result.state is not None
    assert result.state.modules[0].state == "completed"
    assert result.state.modules[1].state == "unlocked"

    store.record_module_completion.assert_called_once_with(LEARNER, ModuleId("m1"))
    achievements_table.save_achievement.assert_called_once()
    saved = achievements_table.save_achievement.call_args.args[0]
    assert saved.learnerId == LEARNER
    assert saved.moduleId == "m1"
    assert saved.achievementType == "module_completion"

    sink.emit.assert_called_once()
    learner_id, title, message, notification_type = sink.emit.call_args.args
    assert learner_id == LEARNER
    assert "Module One" in message
    assert notification_type == "success"
    metrics.put_metric.assert_any_call("ModuleCompleted", 1)
    metrics.put_metric.assert_any_call("AchievementAwarded", 1)


def test_already_completed_module_is_a_no_op():
    snapshot = module_one_complete_snapshot().model_copy(update={"moduleCompletions": [module_done("m1")]})
    store = Mock()
    store.get_snapshot.return_value = snapshot
    achievements_table = Mock()
    sink = Mock()

    awarder = create_achievement_awarder(store, achievements_table, sink)
    result = awarder.try_complete_module(CONTEXT, make_course(), ModuleId("m1"))

    assert result.alreadyCompleted is True
    assert result.achievementRecorded is False
    store.record_module_completion.assert_not_called()
    achievements_table.save_achievement.assert_not_called()
    sink.emit.assert_not_called()


def test_incomplete_module_is_rejected_without_writes():
    store = Mock()
    store.get_snapshot.return_value = make_snapshot(
        video_progress=[watch("v1", 80), watch("v2", 75)],
        quiz_answers=[answer("q1", True), answer("q2", False)],
    )
    achievements_table = Mock()

    awarder = create_achievement_awarder(store, achievements_table)
    with pytest.raises(ModuleNotCompletableError):
        awarder.try_complete_module(CONTEXT, make_course(), ModuleId("m1"))

    store.record_module_completion.assert_not_called()
    achievements_table.save_achievement.assert_not_called()


def test_unknown_or_empty_module_is_rejected():
    store = Mock()
    store.get_snapshot.return_value = make_snapshot()
    awarder = create_achievement_awarder(store)

    with pytest.raises(ModuleNotCompletableError):
        awarder.try_complete_module(CONTEXT, make_course(), ModuleId("nope"))
    with pytest.raises(ModuleNotCompletableError):
        awarder.try_complete_module(CONTEXT, make_course(), ModuleId("m3"))


def test_completion_write_failure_aborts_before_achievement():
    store = Mock()
    store.get_snapshot.return_value = module_one_complete_snapshot()
    store.record_module_completion.side_effect = StoreUnavailableError("record_module_completion", LEARNER)
    achievements_table = Mock()
    sink = Mock()

    awarder = create_achievement_awarder(store, achievements_table, sink)
    with pytest.raises(ModuleCompletionFailedError):
        awarder.try_complete_module(CONTEXT, make_course(), ModuleId("m1"))

    achievements_table.save_achievement.assert_not_called()
    sink.emit.assert_not_called()


def test_snapshot_failure_propagates():
    store = Mock()
    store.get_snapshot.side_effect = StoreUnavailableError("get_snapshot", LEARNER)
    awarder = create_achievement_awarder(store)

    with pytest.raises(StoreUnavailableError):
        awarder.try_complete_module(CONTEXT, make_course(), ModuleId("m1"))
    store.record_module_completion.assert_not_called()


def test_achievement_failure_leaves_module_completed():
    store = _store_completing_m1()
    achievements_table = Mock()
    achievements_table.save_achievement.side_effect = _client_error()
    sink = Mock()

    awarder = create_achievement_awarder(store, achievements_table, sink)
    result = awarder.try_complete_module(CONTEXT, make_course(), ModuleId("m1"))

    store.record_module_completion.assert_called_once()
    assert result.achievementRecorded is False
    assert result.notificationSent is True
    assert result.state.modules[0].isCompleted is True


def test_notification_failure_is_absorbed():
    store = _store_completing_m1()
    achievements_table = Mock()
    achievements_table.save_achievement.return_value = True
    sink = Mock()
    sink.emit.side_effect = RuntimeError("push service down")

    awarder = create_achievement_awarder(store, achievements_table, sink)
    result = awarder.try_complete_module(CONTEXT, make_course(), ModuleId("m1"))

    assert result.achievementRecorded is True
    assert result.notificationSent is False


def test_duplicate_achievement_counts_as_recorded():
    store = _store_completing_m1()
    achievements_table = Mock()
    achievements_table.save_achievement.return_value = False
    metrics = Mock()

    awarder = create_achievement_awarder(store, achievements_table, metrics_manager=metrics)
    result = awarder.try_complete_module(CONTEXT, make_course(), ModuleId("m1"))

    assert result.achievementRecorded is True
    assert all(call.args[0] != "AchievementAwarded" for call in metrics.put_metric.call_args_list)


def test_completing_last_module_awards_course_completion():
    done = make_snapshot(
        video_progress=[watch("v1", 100), watch("v2", 100), watch("v3", 100)],
        quiz_answers=[answer("q1", True), answer("q2", True)],
        module_completions=[module_done("m1")],
    )
    course = make_course()
    # Drop the empty module so m2 is the last one
    course.modules = course.modules[:2]
    store = Mock()
    store.get_snapshot.return_value = done
    store.record_module_completion.return_value = module_done("m2")
    achievements_table = Mock()
    achievements_table.save_achievement.return_value = True
    sink = Mock()

    awarder = create_achievement_awarder(store, achievements_table, sink)
    result = awarder.try_complete_module(CONTEXT, course, ModuleId("m2"))

    assert result.courseCompleted is True
    saved_types = [call.args[0].achievementType for call in achievements_table.save_achievement.call_args_list]
    assert saved_types == ["module_completion", "course_completion"]
    assert achievements_table.save_achievement.call_args_list[1].args[0].moduleId == "c1"
    assert sink.emit.call_count == 2


def test_course_completion_decided_from_the_completion_just_written():
    done = make_snapshot(
        video_progress=[watch("v1", 100), watch("v2", 100), watch("v3", 100)],
        quiz_answers=[answer("q1", True), answer("q2", True)],
        module_completions=[module_done("m1")],
    )
    course = make_course()
    course.modules = course.modules[:2]
    store = Mock()
    # Any read after the completion write would fail
    store.get_snapshot.side_effect = [done, StoreUnavailableError("get_snapshot:moduleCompletions", LEARNER)]
    store.record_module_completion.return_value = module_done("m2")
    achievements_table = Mock()
    achievements_table.save_achievement.return_value = True

    awarder = create_achievement_awarder(store, achievements_table)
    result = awarder.try_complete_module(CONTEXT, course, ModuleId("m2"))

    assert store.get_snapshot.call_count == 1
    assert result.courseCompleted is True
    assert [module.isCompleted for module in result.state.modules] == [True, True]
    saved_types = [call.args[0].achievementType for call in achievements_table.save_achievement.call_args_list]
    assert saved_types == ["module_completion", "course_completion"]
