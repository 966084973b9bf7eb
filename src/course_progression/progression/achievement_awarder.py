import logging
import typing
from datetime import datetime, timezone

from course_progression.cloudwatch.metrics import MetricsManager
from course_progression.dynamodb.achievements_table import AchievementsTable
from course_progression.models.achievement_models import (
    AchievementModel,
    AchievementType,
    NotificationType,
)
from course_progression.models.course_models import CourseModel
from course_progression.models.gating_models import ModuleCompletionResultModel
from course_progression.progression.gating_engine import GatingEngine, recompute
from course_progression.progression.progress_store import ProgressStore, StoreUnavailableError
from course_progression.utils.base_types import CourseId, IsoTimestamp, LearnerId, ModuleId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class LearnerContext(typing.NamedTuple):
    """Identity of the learner and course a request acts on, passed explicitly to every call."""

    learner_id: LearnerId
    course_id: CourseId


class NotificationSink(typing.Protocol):
    def emit(
        self,
        learner_id: LearnerId,
        title: str,
        message: str,
        notification_type: NotificationType,
    ) -> None: ...


class ModuleNotCompletableError(Exception):
    def __init__(self, module_id: ModuleId, reason: str) -> None:
        self.module_id = module_id
        self.reason = reason
        super().__init__(f"Module {module_id} cannot be completed: {reason}")


class ModuleCompletionFailedError(Exception):
    """The module completion record could not be written; nothing was changed."""

    def __init__(self, module_id: ModuleId, cause: typing.Optional[Exception] = None) -> None:
        self.module_id = module_id
        self.cause = cause
        super().__init__(f"Failed to record completion of module {module_id}")


class AchievementAwarder:
    """
    Owns the one transition that completes a module: record the completion, store the
    achievement, notify the learner.

    try_complete_module is idempotent. A module that is already completed is left alone,
    and the achievements table refuses a second row for the same completion, so replays
    never produce duplicate achievements.
    """

    def __init__(
        self,
        progress_store: ProgressStore,
        achievements_table: AchievementsTable,
        notification_sink: NotificationSink,
        metrics_manager: typing.Optional[MetricsManager] = None,
    ):
        self.progress_store = progress_store
        self.achievements_table = achievements_table
        self.notification_sink = notification_sink
        self.metrics_manager = metrics_manager

    def _put_metric(self, name: str) -> None:
        if self.metrics_manager is not None:
            self.metrics_manager.put_metric(name, 1)

    def _award(self, learner_id: LearnerId, unit_id: str, achievement_type: AchievementType) -> bool:
        """
        Stores an achievement. Returns True when the learner now holds it, whether it was
        written just now or already existed. Store failures are logged, not raised.
        """
        achievement = AchievementModel(
            learnerId=learner_id,
            moduleId=ModuleId(unit_id),
            achievementType=achievement_type,
            earnedAt=IsoTimestamp(datetime.now(timezone.utc).isoformat()),
        )
        try:
            if self.achievements_table.save_achievement(achievement):
                self._put_metric("AchievementAwarded")
            return True
        except Exception as e:
            _LOGGER.error(
                f"Completion of {unit_id} recorded for learner {learner_id} but the {achievement_type} "
                f"achievement could not be stored: {e}",
                exc_info=True,
            )
            return False

    def _notify(
        self, learner_id: LearnerId, title: str, message: str, notification_type: NotificationType = "success"
    ) -> bool:
        try:
            self.notification_sink.emit(learner_id, title, message, notification_type)
            return True
        except Exception as e:
            _LOGGER.error(f"Failed to emit notification '{title}' for learner {learner_id}: {e}", exc_info=True)
            return False

    def try_complete_module(
        self,
        context: LearnerContext,
        course: CourseModel,
        module_id: ModuleId,
    ) -> ModuleCompletionResultModel:
        """
        Completes a module on the learner's explicit confirmation.

        :raises StoreUnavailableError: The learner's snapshot could not be read.
        :raises ModuleNotCompletableError: The module is unknown, has no videos, or not every
            video is fully complete.
        :raises ModuleCompletionFailedError: Writing the completion record failed; no
            achievement or notification was attempted.
        """
        learner_id = context.learner_id
        module = course.find_module(module_id)
        if module is None:
            raise ModuleNotCompletableError(module_id, "module is not part of this course")

        snapshot = self.progress_store.get_snapshot(learner_id)
        engine = GatingEngine(course, snapshot)

        if engine.evaluator.is_module_completed(module_id):
            _LOGGER.info(f"Module {module_id} already completed for learner {learner_id}. Nothing to do.")
            return ModuleCompletionResultModel(
                moduleId=module_id,
                alreadyCompleted=True,
                achievementRecorded=False,
                notificationSent=False,
                courseCompleted=engine.are_all_modules_completed(),
                state=engine.build_state(),
            )

        if not engine.can_complete_module(module):
            raise ModuleNotCompletableError(module_id, "not every video in the module is fully complete")

        try:
            completion = self.progress_store.record_module_completion(learner_id, module_id)
        except StoreUnavailableError as e:
            _LOGGER.error(f"Could not record completion of module {module_id} for learner {learner_id}: {e}")
            raise ModuleCompletionFailedError(module_id, e) from e
        self._put_metric("ModuleCompleted")

        achievement_recorded = self._award(learner_id, module_id, "module_completion")
        notification_sent = self._notify(
            learner_id,
            "Congratulations! Module completed",
            f'You have successfully completed the module "{module.title or module_id}".',
        )

        # Strict snapshot plus the completion just written
        completed_snapshot = snapshot.model_copy(
            update={"moduleCompletions": [*snapshot.moduleCompletions, completion]}
        )
        course_completed = GatingEngine(course, completed_snapshot).are_all_modules_completed()
        if course_completed:
            _LOGGER.info(f"Learner {learner_id} completed every module of course {course.courseId}.")
            self._award(learner_id, course.courseId, "course_completion")
            self._notify(
                learner_id,
                "Congratulations! Course completed",
                f'You have completed every module of "{course.title or course.courseId}".',
            )

        return ModuleCompletionResultModel(
            moduleId=module_id,
            alreadyCompleted=False,
            achievementRecorded=achievement_recorded,
            notificationSent=notification_sent,
            courseCompleted=course_completed,
            state=recompute(completed_snapshot, course),
        )
