import logging
import typing
from datetime import datetime, timezone

from botocore.exceptions import ClientError

from course_progression.dynamodb.module_completions_table import ModuleCompletionsTable
from course_progression.dynamodb.quiz_answers_table import QuizAnswersTable
from course_progression.dynamodb.video_progress_table import VideoProgressTable
from course_progression.models.progress_models import (
    ModuleCompletionRecordModel,
    ProgressSnapshotModel,
    QuizAnswerRecordModel,
    VideoProgressRecordModel,
)
from course_progression.utils.base_types import IsoTimestamp, LearnerId, ModuleId, QuestionId, VideoId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

# Write side: a watch record only gets completedAt once the whole video has been watched.
# The read side (completion_evaluator.WATCH_COMPLETION_THRESHOLD) accepts 70%.
WATCH_RECORD_COMPLETION_THRESHOLD = 100


class StoreUnavailableError(Exception):
    def __init__(self, operation: str, learner_id: LearnerId, cause: typing.Optional[Exception] = None) -> None:
        self.operation = operation
        self.learner_id = learner_id
        self.cause = cause
        super().__init__(f"Progress store unavailable during {operation} for learner {learner_id}")


def _now_iso() -> IsoTimestamp:
    return IsoTimestamp(datetime.now(timezone.utc).isoformat())


class ProgressStore:
    """
    Holds per-learner completion facts: video watch progress, quiz answers and module
    completion records. Pure data access with upsert (last-write-wins) semantics; it never
    decides what the facts mean.

    Any persistence failure is raised as StoreUnavailableError. Nothing is retried here.
    """

    def __init__(
        self,
        video_progress_table: VideoProgressTable,
        quiz_answers_table: QuizAnswersTable,
        module_completions_table: ModuleCompletionsTable,
    ):
        self.video_progress_table = video_progress_table
        self.quiz_answers_table = quiz_answers_table
        self.module_completions_table = module_completions_table

    def record_watch_progress(
        self,
        learner_id: LearnerId,
        video_id: VideoId,
        watch_time_seconds: int,
        percentage: int,
    ) -> VideoProgressRecordModel:
        now = _now_iso()
        record = VideoProgressRecordModel(
            learnerId=learner_id,
            videoId=video_id,
            watchTimeSeconds=watch_time_seconds,
            completionPercentage=percentage,
            completedAt=now if percentage >= WATCH_RECORD_COMPLETION_THRESHOLD else None,
            updatedAt=now,
        )
        try:
            self.video_progress_table.put_video_progress(record)
        except ClientError as e:
            raise StoreUnavailableError("record_watch_progress", learner_id, e) from e
        return record

    def record_quiz_answer(
        self,
        learner_id: LearnerId,
        question_id: QuestionId,
        is_correct: bool,
        selected_answer: typing.Optional[str] = None,
    ) -> QuizAnswerRecordModel:
        record = QuizAnswerRecordModel(
            learnerId=learner_id,
            questionId=question_id,
            isCorrect=is_correct,
            selectedAnswer=selected_answer,
            answeredAt=_now_iso(),
        )
        try:
            self.quiz_answers_table.put_quiz_answer(record)
        except ClientError as e:
            raise StoreUnavailableError("record_quiz_answer", learner_id, e) from e
        return record

    def record_module_completion(self, learner_id: LearnerId, module_id: ModuleId) -> ModuleCompletionRecordModel:
        record = ModuleCompletionRecordModel(
            learnerId=learner_id,
            moduleId=module_id,
            progress=100,
            completedAt=_now_iso(),
        )
        try:
            self.module_completions_table.put_module_completion(record)
        except ClientError as e:
            raise StoreUnavailableError("record_module_completion", learner_id, e) from e
        return record

    def get_snapshot(self, learner_id: LearnerId, tolerate_failures: bool = False) -> ProgressSnapshotModel:
        """
        Fetches every progress fact for the learner.

        :param tolerate_failures: When True, a section that cannot be read is logged and
            treated as empty, so gating comes out more locked than the true state instead
            of failing. When False, the first failure raises StoreUnavailableError.
        """
        _LOGGER.info(f"Fetching progress snapshot for learner_id: {learner_id}")
        sections: dict[str, typing.Callable[[LearnerId], list]] = {
            "videoProgress": self.video_progress_table.get_all_video_progress_for_learner,
            "quizAnswers": self.quiz_answers_table.get_all_quiz_answers_for_learner,
            "moduleCompletions": self.module_completions_table.get_all_module_completions_for_learner,
        }

        snapshot_data: dict[str, list] = {}
        for section_name, fetch in sections.items():
            try:
                snapshot_data[section_name] = fetch(learner_id)
            except ClientError as e:
                if not tolerate_failures:
                    raise StoreUnavailableError(f"get_snapshot:{section_name}", learner_id, e) from e
                _LOGGER.warning(f"Treating {section_name} as empty for learner {learner_id} after store failure: {e}")
                snapshot_data[section_name] = []

        return ProgressSnapshotModel(learnerId=learner_id, **snapshot_data)
