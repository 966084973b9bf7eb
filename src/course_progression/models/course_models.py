import typing

import pydantic

from course_progression.utils.base_types import CourseId, ModuleId, QuestionId, VideoId


def _ensure_unique_order(items: list, kind: str, parent_id: str) -> None:
    seen: set[int] = set()
    for item in items:
        if item.orderIndex in seen:
            raise ValueError(f"Duplicate orderIndex {item.orderIndex} for {kind} in {parent_id}")
        seen.add(item.orderIndex)


class QuizQuestionModel(pydantic.BaseModel):
    """A verification question attached to a video. Every question must be answered correctly to finish the video."""

    questionId: QuestionId
    videoId: VideoId
    correctAnswer: str


class VideoModel(pydantic.BaseModel):
    videoId: VideoId
    moduleId: ModuleId
    title: str = ""
    orderIndex: int = pydantic.Field(..., ge=0)
    durationSeconds: int = pydantic.Field(default=0, ge=0)
    quizQuestions: list[QuizQuestionModel] = pydantic.Field(default_factory=list)


class ModuleModel(pydantic.BaseModel):
    moduleId: ModuleId
    courseId: CourseId
    title: str = ""
    orderIndex: int = pydantic.Field(..., ge=0)
    videos: list[VideoModel] = pydantic.Field(default_factory=list)

    @pydantic.field_validator("videos")
    @classmethod
    def sort_videos_by_order(cls, v: list[VideoModel], info: pydantic.ValidationInfo) -> list[VideoModel]:
        _ensure_unique_order(v, "video", str(info.data.get("moduleId", "module")))
        return sorted(v, key=lambda video: video.orderIndex)


class CourseModel(pydantic.BaseModel):
    """
    The authored content hierarchy of a course: modules, their videos and the videos' quiz questions.
    Modules and videos are kept sorted by orderIndex, which defines the unlock sequence.
    """

    courseId: CourseId
    title: str = ""
    modules: list[ModuleModel] = pydantic.Field(default_factory=list)

    @pydantic.field_validator("modules")
    @classmethod
    def sort_modules_by_order(cls, v: list[ModuleModel], info: pydantic.ValidationInfo) -> list[ModuleModel]:
        _ensure_unique_order(v, "module", str(info.data.get("courseId", "course")))
        return sorted(v, key=lambda module: module.orderIndex)

    def all_videos(self) -> list[VideoModel]:
        return [video for module in self.modules for video in module.videos]

    def find_module(self, module_id: ModuleId) -> typing.Optional[ModuleModel]:
        for module in self.modules:
            if module.moduleId == module_id:
                return module
        return None

    def find_video(self, video_id: VideoId) -> typing.Optional[VideoModel]:
        for video in self.all_videos():
            if video.videoId == video_id:
                return video
        return None

    def find_video_position(self, video_id: VideoId) -> typing.Optional[tuple[int, int]]:
        """
        :return: (module index, video index) of the video in unlock order, or None if absent.
        """
        for module_index, module in enumerate(self.modules):
            for video_index, video in enumerate(module.videos):
                if video.videoId == video_id:
                    return module_index, video_index
        return None

    def find_question(self, question_id: QuestionId) -> typing.Optional[QuizQuestionModel]:
        for video in self.all_videos():
            for question in video.quizQuestions:
                if question.questionId == question_id:
                    return question
        return None
