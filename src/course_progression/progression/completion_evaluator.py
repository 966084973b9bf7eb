import typing

from course_progression.models.course_models import VideoModel
from course_progression.models.progress_models import ProgressSnapshotModel, VideoProgressRecordModel
from course_progression.utils.base_types import ModuleId

# Read side: watching 70% of a video counts, provided the record also carries completedAt.
WATCH_COMPLETION_THRESHOLD = 70


def is_video_watch_complete(record: typing.Optional[VideoProgressRecordModel]) -> bool:
    if record is None:
        return False
    return record.completionPercentage >= WATCH_COMPLETION_THRESHOLD and record.completedAt is not None


class CompletionEvaluator:
    """
    Completion predicates for one learner's progress snapshot.
    Missing records are never an error; they simply mean "not complete".
    """

    def __init__(self, snapshot: ProgressSnapshotModel):
        self.snapshot = snapshot

    def is_video_watch_complete(self, video: VideoModel) -> bool:
        return is_video_watch_complete(self.snapshot.get_video_progress(video.videoId))

    def is_quiz_complete(self, video: VideoModel) -> bool:
        """True if the video has no questions, or every question has a correct answer on record."""
        for question in video.quizQuestions:
            answer = self.snapshot.get_quiz_answer(question.questionId)
            if answer is None or not answer.isCorrect:
                return False
        return True

    def is_video_fully_complete(self, video: VideoModel) -> bool:
        return self.is_video_watch_complete(video) and self.is_quiz_complete(video)

    def is_module_completed(self, module_id: ModuleId) -> bool:
        record = self.snapshot.get_module_completion(module_id)
        return record is not None and record.completedAt is not None
