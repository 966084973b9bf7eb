import json
import logging
import typing

from botocore.exceptions import ClientError
from pydantic import ValidationError

from course_progression.cloudwatch.metrics import MetricsManager
from course_progression.dynamodb.achievements_table import AchievementsTable
from course_progression.dynamodb.course_catalog_table import CourseCatalogTable
from course_progression.dynamodb.module_completions_table import ModuleCompletionsTable
from course_progression.dynamodb.notifications_table import NotificationsTable
from course_progression.dynamodb.quiz_answers_table import QuizAnswersTable
from course_progression.dynamodb.video_progress_table import VideoProgressTable
from course_progression.models.achievement_models import (
    AchievementViewModel,
    ListOfAchievementsResponseModel,
    get_achievement_title,
)
from course_progression.models.course_models import CourseModel
from course_progression.models.gating_models import (
    QuizAnswerResponseModel,
    VideoCompletionResponseModel,
)
from course_progression.models.progress_models import QuizAnswerInputModel, WatchProgressInputModel
from course_progression.progression.achievement_awarder import (
    AchievementAwarder,
    LearnerContext,
    ModuleCompletionFailedError,
    ModuleNotCompletableError,
)
from course_progression.progression.completion_evaluator import CompletionEvaluator
from course_progression.progression.gating_engine import GatingEngine, recompute
from course_progression.progression.progress_store import (
    WATCH_RECORD_COMPLETION_THRESHOLD,
    ProgressStore,
    StoreUnavailableError,
)
from course_progression.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_event_body,
    get_learner_id_from_event,
    get_method,
    get_path,
    match_path,
)
from course_progression.utils.aws_env_vars import (
    get_achievements_table_name,
    get_course_catalog_table_name,
    get_metrics_namespace,
    get_module_completions_table_name,
    get_notifications_table_name,
    get_quiz_answers_table_name,
    get_video_progress_table_name,
)
from course_progression.utils.base_types import CourseId, LearnerId, ModuleId, QuestionId, VideoId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

COURSE_PROGRESS_ROUTE = "/courses/{courseId}/progress"
VIDEO_PROGRESS_ROUTE = "/courses/{courseId}/videos/{videoId}/progress"
VIDEO_COMPLETE_ROUTE = "/courses/{courseId}/videos/{videoId}/complete"
QUIZ_ANSWER_ROUTE = "/courses/{courseId}/questions/{questionId}/answer"
MODULE_COMPLETE_ROUTE = "/courses/{courseId}/modules/{moduleId}/complete"
ACHIEVEMENTS_ROUTE = "/achievements"


class RequestBodyError(ValueError):
    pass


def derive_completion_percentage(watch_time_seconds: int, duration_seconds: int) -> int:
    if duration_seconds <= 0:
        return 0
    return min(100, (watch_time_seconds * 100) // duration_seconds)


class CourseProgressApiHandler:
    def __init__(
        self,
        course_catalog_table: CourseCatalogTable,
        progress_store: ProgressStore,
        achievement_awarder: AchievementAwarder,
        achievements_table: AchievementsTable,
        metrics_manager: MetricsManager,
    ):
        self.course_catalog_table = course_catalog_table
        self.progress_store = progress_store
        self.achievement_awarder = achievement_awarder
        self.achievements_table = achievements_table
        self.metrics_manager = metrics_manager

    def _parse_body(self, event: dict, model: typing.Any, required: bool = True) -> typing.Any:
        if not event.get("body"):
            if required:
                raise RequestBodyError("Request body is missing.")
            return None
        return model.model_validate_json(get_event_body(event))

    def _state_response(self, learner_id: LearnerId, course: CourseModel, event: dict) -> dict:
        # Passive reads degrade to "more locked" instead of failing the request
        snapshot = self.progress_store.get_snapshot(learner_id, tolerate_failures=True)
        state = recompute(snapshot, course)
        return format_lambda_response(200, state.model_dump(exclude_none=True), event=event)

    def _handle_get_progress(self, learner_id: LearnerId, course: CourseModel, event: dict) -> dict:
        _LOGGER.info(f"Computing gating state for learner {learner_id}, course {course.courseId}")
        return self._state_response(learner_id, course, event)

    def _handle_put_watch_progress(
        self, learner_id: LearnerId, course: CourseModel, video_id: VideoId, event: dict
    ) -> dict:
        video = course.find_video(video_id)
        if video is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "Video not found in course.", event=event)

        watch_input: WatchProgressInputModel = self._parse_body(event, WatchProgressInputModel)
        percentage = watch_input.completionPercentage
        if percentage is None:
            percentage = derive_completion_percentage(watch_input.watchTimeSeconds, video.durationSeconds)

        try:
            self.progress_store.record_watch_progress(learner_id, video_id, watch_input.watchTimeSeconds, percentage)
        except StoreUnavailableError as e:
            # A lost watch tick is superseded by the next one; report the current state instead of failing
            _LOGGER.warning(f"Watch progress for learner {learner_id}, video {video_id} not saved: {e}")
            self.metrics_manager.put_metric("StoreUnavailable", 1)

        return self._state_response(learner_id, course, event)

    def _handle_post_video_complete(
        self, learner_id: LearnerId, course: CourseModel, video_id: VideoId, event: dict
    ) -> dict:
        position = course.find_video_position(video_id)
        if position is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "Video not found in course.", event=event)
        module_index, video_index = position
        video = course.modules[module_index].videos[video_index]

        engine = GatingEngine(course, self.progress_store.get_snapshot(learner_id))
        if not engine.is_video_unlocked(module_index, video_index):
            return create_error_response(ErrorCode.CONFLICT, "Video is locked.", event=event)

        watch_input: typing.Optional[WatchProgressInputModel] = self._parse_body(
            event, WatchProgressInputModel, required=False
        )
        stored = engine.snapshot.get_video_progress(video_id)
        watch_time = stored.watchTimeSeconds if stored else 0
        percentage = stored.completionPercentage if stored else 0
        if watch_input is not None:
            watch_time = max(watch_time, watch_input.watchTimeSeconds)
            if watch_input.completionPercentage is not None:
                percentage = max(percentage, watch_input.completionPercentage)
            else:
                percentage = max(percentage, derive_completion_percentage(watch_time, video.durationSeconds))

        if percentage < WATCH_RECORD_COMPLETION_THRESHOLD:
            return create_error_response(
                ErrorCode.CONFLICT,
                f"The whole video must be watched before it can be marked complete ({percentage}% watched).",
                event=event,
            )

        self.progress_store.record_watch_progress(
            learner_id, video_id, max(watch_time, video.durationSeconds), WATCH_RECORD_COMPLETION_THRESHOLD
        )

        snapshot = self.progress_store.get_snapshot(learner_id, tolerate_failures=True)
        response = VideoCompletionResponseModel(
            videoId=video_id,
            quizPending=not CompletionEvaluator(snapshot).is_quiz_complete(video),
            state=recompute(snapshot, course),
        )
        return format_lambda_response(200, response.model_dump(exclude_none=True), event=event)

    def _handle_put_quiz_answer(
        self, learner_id: LearnerId, course: CourseModel, question_id: QuestionId, event: dict
    ) -> dict:
        question = course.find_question(question_id)
        position = course.find_video_position(question.videoId) if question else None
        if question is None or position is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "Question not found in course.", event=event)

        answer_input: QuizAnswerInputModel = self._parse_body(event, QuizAnswerInputModel)

        engine = GatingEngine(course, self.progress_store.get_snapshot(learner_id))
        if not engine.is_video_unlocked(*position):
            return create_error_response(ErrorCode.CONFLICT, "Video is locked.", event=event)

        is_correct = answer_input.selectedAnswer == question.correctAnswer
        self.progress_store.record_quiz_answer(learner_id, question_id, is_correct, answer_input.selectedAnswer)

        snapshot = self.progress_store.get_snapshot(learner_id, tolerate_failures=True)
        response = QuizAnswerResponseModel(
            questionId=question_id,
            isCorrect=is_correct,
            correctAnswer=None if is_correct else question.correctAnswer,
            state=recompute(snapshot, course),
        )
        return format_lambda_response(200, response.model_dump(exclude_none=True), event=event)

    def _handle_post_module_complete(
        self, learner_id: LearnerId, course: CourseModel, module_id: ModuleId, event: dict
    ) -> dict:
        if course.find_module(module_id) is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "Module not found in course.", event=event)

        context = LearnerContext(learner_id=learner_id, course_id=course.courseId)
        try:
            result = self.achievement_awarder.try_complete_module(context, course, module_id)
        except ModuleNotCompletableError as e:
            _LOGGER.info(f"Rejected completion of module {module_id} for learner {learner_id}: {e.reason}")
            return create_error_response(ErrorCode.CONFLICT, f"Module cannot be completed: {e.reason}.", event=event)
        except ModuleCompletionFailedError as e:
            _LOGGER.error(f"Module completion write failed for learner {learner_id}: {e}")
            self.metrics_manager.put_metric("StoreUnavailable", 1)
            return create_error_response(
                ErrorCode.STORE_UNAVAILABLE, "Failed to mark the module as complete.", event=event
            )

        return format_lambda_response(200, result.model_dump(exclude_none=True), event=event)

    def _handle_get_achievements(self, learner_id: LearnerId, event: dict) -> dict:
        achievements = self.achievements_table.get_achievements_for_learner(learner_id)
        response = ListOfAchievementsResponseModel(
            learnerId=learner_id,
            achievements=[
                AchievementViewModel(
                    moduleId=achievement.moduleId,
                    achievementType=achievement.achievementType,
                    title=get_achievement_title(achievement.achievementType),
                    earnedAt=achievement.earnedAt,
                )
                for achievement in achievements
            ],
        )
        return format_lambda_response(200, response.model_dump(exclude_none=True), event=event)

    def _route_course_request(self, http_method: str, path: str, learner_id: LearnerId, event: dict) -> dict:
        routes: list[tuple[str, str, typing.Callable[..., dict], typing.Optional[str]]] = [
            ("GET", COURSE_PROGRESS_ROUTE, self._handle_get_progress, None),
            ("PUT", VIDEO_PROGRESS_ROUTE, self._handle_put_watch_progress, "videoId"),
            ("POST", VIDEO_COMPLETE_ROUTE, self._handle_post_video_complete, "videoId"),
            ("PUT", QUIZ_ANSWER_ROUTE, self._handle_put_quiz_answer, "questionId"),
            ("POST", MODULE_COMPLETE_ROUTE, self._handle_post_module_complete, "moduleId"),
        ]
        for route_method, pattern, route_handler, unit_param in routes:
            path_params = match_path(pattern, path)
            if path_params is None or http_method != route_method:
                continue

            course_id = CourseId(path_params["courseId"])
            course = self.course_catalog_table.get_course(course_id)
            if course is None:
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "Course not found.", event=event)

            if unit_param is None:
                return route_handler(learner_id, course, event)
            return route_handler(learner_id, course, path_params[unit_param], event)

        _LOGGER.warning(f"Unsupported path or method for course progress: {http_method} {path}")
        return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

    def handle(self, event: dict) -> dict:
        learner_id = get_learner_id_from_event(event)
        if not learner_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path = get_path(event)

        _LOGGER.info(f"CourseProgressApiHandler: {http_method} {path} for learner: {learner_id}")

        try:
            if http_method == "GET" and match_path(ACHIEVEMENTS_ROUTE, path) is not None:
                return self._handle_get_achievements(learner_id, event)
            return self._route_course_request(http_method, path, learner_id, event)

        except RequestBodyError as e:
            _LOGGER.error(f"Bad request body for {http_method} {path}: {e}")
            return create_error_response(ErrorCode.VALIDATION_ERROR, str(e), event=event)
        except ValidationError as e:
            _LOGGER.error(f"Request body validation error: {e.errors()}", exc_info=True)
            return create_error_response(
                ErrorCode.VALIDATION_ERROR,
                details=e.errors(include_url=False, include_context=False, include_input=False),
                event=event,
            )
        except json.JSONDecodeError:
            _LOGGER.error("Request body is not valid JSON.", exc_info=True)
            return create_error_response(ErrorCode.VALIDATION_ERROR, event=event)
        except StoreUnavailableError as e:
            _LOGGER.error(f"Store unavailable while handling {http_method} {path} for {learner_id}: {e}")
            self.metrics_manager.put_metric("StoreUnavailable", 1)
            return create_error_response(ErrorCode.STORE_UNAVAILABLE, event=event)
        except ClientError as e:
            _LOGGER.error(f"DynamoDB error while handling {http_method} {path}: {e.response['Error']['Message']}")
            self.metrics_manager.put_metric("StoreUnavailable", 1)
            return create_error_response(ErrorCode.STORE_UNAVAILABLE, event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in CourseProgressApiHandler for {learner_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def course_progress_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global course_progress_lambda_handler received event.")
    metrics_manager = MetricsManager(get_metrics_namespace())
    metrics_manager.set_dimension("Service", "CourseProgress")

    try:
        progress_store = ProgressStore(
            video_progress_table=VideoProgressTable(get_video_progress_table_name()),
            quiz_answers_table=QuizAnswersTable(get_quiz_answers_table_name()),
            module_completions_table=ModuleCompletionsTable(get_module_completions_table_name()),
        )
        achievements_table = AchievementsTable(get_achievements_table_name())
        achievement_awarder = AchievementAwarder(
            progress_store=progress_store,
            achievements_table=achievements_table,
            notification_sink=NotificationsTable(get_notifications_table_name()),
            metrics_manager=metrics_manager,
        )
        api_handler = CourseProgressApiHandler(
            course_catalog_table=CourseCatalogTable(get_course_catalog_table_name()),
            progress_store=progress_store,
            achievement_awarder=achievement_awarder,
            achievements_table=achievements_table,
            metrics_manager=metrics_manager,
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in course_progress_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during CourseProgressApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
    finally:
        metrics_manager.flush()
