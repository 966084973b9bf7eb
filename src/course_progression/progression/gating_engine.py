import decimal
import logging

from course_progression.models.course_models import CourseModel, ModuleModel, VideoModel
from course_progression.models.gating_models import (
    GatingStateModel,
    ModuleGatingStateModel,
    UnitState,
    VideoGatingStateModel,
)
from course_progression.models.progress_models import ProgressSnapshotModel
from course_progression.progression.completion_evaluator import CompletionEvaluator

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


def percent_of(done: int, total: int) -> int:
    """
    round(100 * done / total) with halves rounded up, or 0 when total is 0.
    """
    if total <= 0:
        return 0
    ratio = decimal.Decimal(100 * done) / decimal.Decimal(total)
    return int(ratio.quantize(decimal.Decimal(1), rounding=decimal.ROUND_HALF_UP))


class GatingEngine:
    """
    Derives lock/unlock/completed state for every module and video of a course from one
    learner's progress snapshot.

    Unlock rules:
      - module 0 is always unlocked; module i > 0 unlocks once module i - 1 has been
        explicitly completed by the learner.
      - video 0 of an unlocked module is unlocked; video j > 0 unlocks once video j - 1
        is fully complete (watched and quiz passed).

    Indexes follow the course's orderIndex ordering. An index outside the course is locked.
    """

    def __init__(self, course: CourseModel, snapshot: ProgressSnapshotModel):
        self.course = course
        self.snapshot = snapshot
        self.evaluator = CompletionEvaluator(snapshot)

    def is_module_unlocked(self, module_index: int) -> bool:
        if module_index < 0 or module_index >= len(self.course.modules):
            return False
        if module_index == 0:
            return True
        previous_module = self.course.modules[module_index - 1]
        return self.evaluator.is_module_completed(previous_module.moduleId)

    def is_video_unlocked(self, module_index: int, video_index: int) -> bool:
        if not self.is_module_unlocked(module_index):
            return False
        videos = self.course.modules[module_index].videos
        if video_index < 0 or video_index >= len(videos):
            return False
        if video_index == 0:
            return True
        return self.evaluator.is_video_fully_complete(videos[video_index - 1])

    def count_fully_complete(self, videos: list[VideoModel]) -> int:
        return sum(1 for video in videos if self.evaluator.is_video_fully_complete(video))

    def can_complete_module(self, module: ModuleModel) -> bool:
        """
        Whether the explicit "mark module complete" action should be offered.
        Never triggers completion by itself.
        """
        total_videos = len(module.videos)
        return (
            total_videos > 0
            and self.count_fully_complete(module.videos) == total_videos
            and not self.evaluator.is_module_completed(module.moduleId)
        )

    def get_module_progress(self, module: ModuleModel) -> int:
        return percent_of(self.count_fully_complete(module.videos), len(module.videos))

    def get_overall_progress(self) -> int:
        all_videos = self.course.all_videos()
        return percent_of(self.count_fully_complete(all_videos), len(all_videos))

    def get_module_state(self, module_index: int) -> UnitState:
        module = self.course.modules[module_index]
        if self.evaluator.is_module_completed(module.moduleId):
            return "completed"
        return "unlocked" if self.is_module_unlocked(module_index) else "locked"

    def get_video_state(self, module_index: int, video_index: int) -> UnitState:
        video = self.course.modules[module_index].videos[video_index]
        if not self.is_video_unlocked(module_index, video_index):
            return "locked"
        return "completed" if self.evaluator.is_video_fully_complete(video) else "unlocked"

    def are_all_modules_completed(self) -> bool:
        return bool(self.course.modules) and all(
            self.evaluator.is_module_completed(module.moduleId) for module in self.course.modules
        )

    def _build_video_state(self, module_index: int, video_index: int) -> VideoGatingStateModel:
        video = self.course.modules[module_index].videos[video_index]
        record = self.snapshot.get_video_progress(video.videoId)
        return VideoGatingStateModel(
            videoId=video.videoId,
            orderIndex=video.orderIndex,
            state=self.get_video_state(module_index, video_index),
            isUnlocked=self.is_video_unlocked(module_index, video_index),
            isWatchComplete=self.evaluator.is_video_watch_complete(video),
            isQuizComplete=self.evaluator.is_quiz_complete(video),
            isFullyComplete=self.evaluator.is_video_fully_complete(video),
            watchTimeSeconds=record.watchTimeSeconds if record else 0,
            completionPercentage=record.completionPercentage if record else 0,
            quizQuestionCount=len(video.quizQuestions),
        )

    def _build_module_state(self, module_index: int) -> ModuleGatingStateModel:
        module = self.course.modules[module_index]
        return ModuleGatingStateModel(
            moduleId=module.moduleId,
            orderIndex=module.orderIndex,
            state=self.get_module_state(module_index),
            isUnlocked=self.is_module_unlocked(module_index),
            isCompleted=self.evaluator.is_module_completed(module.moduleId),
            canComplete=self.can_complete_module(module),
            progress=self.get_module_progress(module),
            completedVideos=self.count_fully_complete(module.videos),
            totalVideos=len(module.videos),
            videos=[self._build_video_state(module_index, video_index) for video_index in range(len(module.videos))],
        )

    def build_state(self) -> GatingStateModel:
        module_states = [self._build_module_state(index) for index in range(len(self.course.modules))]
        all_videos = self.course.all_videos()
        return GatingStateModel(
            learnerId=self.snapshot.learnerId,
            courseId=self.course.courseId,
            overallProgress=self.get_overall_progress(),
            completedModulesCount=sum(1 for module_state in module_states if module_state.isCompleted),
            completedVideos=self.count_fully_complete(all_videos),
            totalVideos=len(all_videos),
            modules=module_states,
        )


def recompute(snapshot: ProgressSnapshotModel, course: CourseModel) -> GatingStateModel:
    """
    Full recompute of a course's gating state from a fresh snapshot.
    Callers invoke this after every mutation; nothing is cached between calls.
    """
    state = GatingEngine(course, snapshot).build_state()
    _LOGGER.info(
        f"Recomputed gating for learner {snapshot.learnerId}, course {course.courseId}: "
        f"{state.overallProgress}% overall, {state.completedModulesCount}/{len(course.modules)} modules completed"
    )
    return state
