import typing

from pydantic import BaseModel, Field

from course_progression.utils.base_types import CourseId, LearnerId, ModuleId, QuestionId, VideoId

UnitState = typing.Literal["locked", "unlocked", "completed"]


class VideoGatingStateModel(BaseModel):
    videoId: VideoId
    orderIndex: int
    state: UnitState
    isUnlocked: bool
    isWatchComplete: bool
    isQuizComplete: bool
    isFullyComplete: bool
    watchTimeSeconds: int = 0
    completionPercentage: int = 0
    quizQuestionCount: int = 0


class ModuleGatingStateModel(BaseModel):
    moduleId: ModuleId
    orderIndex: int
    state: UnitState
    isUnlocked: bool
    isCompleted: bool
    canComplete: bool
    progress: int = Field(..., ge=0, le=100)
    completedVideos: int
    totalVideos: int
    videos: list[VideoGatingStateModel] = Field(default_factory=list)


class GatingStateModel(BaseModel):
    """The full lock/unlock/completed picture of one course for one learner."""

    learnerId: LearnerId
    courseId: CourseId
    overallProgress: int = Field(..., ge=0, le=100)
    completedModulesCount: int
    completedVideos: int
    totalVideos: int
    modules: list[ModuleGatingStateModel] = Field(default_factory=list)


class ModuleCompletionResultModel(BaseModel):
    moduleId: ModuleId
    alreadyCompleted: bool
    achievementRecorded: bool
    notificationSent: bool
    courseCompleted: bool = False
    state: typing.Optional[GatingStateModel] = None


class VideoCompletionResponseModel(BaseModel):
    videoId: VideoId
    quizPending: bool
    state: GatingStateModel


class QuizAnswerResponseModel(BaseModel):
    questionId: QuestionId
    isCorrect: bool
    # Revealed only after a wrong answer
    correctAnswer: typing.Optional[str] = None
    state: GatingStateModel
