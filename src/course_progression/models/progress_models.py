import typing

from pydantic import BaseModel, Field

from course_progression.utils.base_types import (
    IsoTimestamp,
    LearnerId,
    ModuleId,
    QuestionId,
    VideoId,
)


class VideoProgressRecordModel(BaseModel):
    """Watch progress for one (learner, video). Each write replaces the whole record."""

    learnerId: LearnerId
    videoId: VideoId
    watchTimeSeconds: int = Field(default=0, ge=0)
    completionPercentage: int = Field(default=0, ge=0, le=100)
    completedAt: typing.Optional[IsoTimestamp] = None
    updatedAt: typing.Optional[IsoTimestamp] = None


class QuizAnswerRecordModel(BaseModel):
    learnerId: LearnerId
    questionId: QuestionId
    isCorrect: bool
    selectedAnswer: typing.Optional[str] = None
    answeredAt: typing.Optional[IsoTimestamp] = None


class ModuleCompletionRecordModel(BaseModel):
    """Written only when the learner explicitly confirms a module as complete."""

    learnerId: LearnerId
    moduleId: ModuleId
    progress: int = Field(default=0, ge=0, le=100)
    completedAt: typing.Optional[IsoTimestamp] = None


class ProgressSnapshotModel(BaseModel):
    """
    Every progress fact held for one learner, fetched together for a single recompute pass.
    """

    learnerId: LearnerId
    videoProgress: list[VideoProgressRecordModel] = Field(default_factory=list)
    quizAnswers: list[QuizAnswerRecordModel] = Field(default_factory=list)
    moduleCompletions: list[ModuleCompletionRecordModel] = Field(default_factory=list)

    def get_video_progress(self, video_id: VideoId) -> typing.Optional[VideoProgressRecordModel]:
        for record in self.videoProgress:
            if record.videoId == video_id:
                return record
        return None

    def get_quiz_answer(self, question_id: QuestionId) -> typing.Optional[QuizAnswerRecordModel]:
        for record in self.quizAnswers:
            if record.questionId == question_id:
                return record
        return None

    def get_module_completion(self, module_id: ModuleId) -> typing.Optional[ModuleCompletionRecordModel]:
        for record in self.moduleCompletions:
            if record.moduleId == module_id:
                return record
        return None


class WatchProgressInputModel(BaseModel):
    """
    Request body for a watch tick. completionPercentage is derived from the video's
    duration when the client does not send it.
    """

    watchTimeSeconds: int = Field(..., ge=0)
    completionPercentage: typing.Optional[int] = Field(default=None, ge=0, le=100)

    class Config:
        extra = "forbid"


class QuizAnswerInputModel(BaseModel):
    selectedAnswer: str = Field(..., min_length=1)

    class Config:
        extra = "forbid"
