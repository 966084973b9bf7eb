import logging
import typing

from botocore.exceptions import ClientError

from course_progression.dynamodb.notifications_table import NotificationsTable
from course_progression.models.achievement_models import ListOfNotificationsResponseModel
from course_progression.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_last_evaluated_key,
    get_learner_id_from_event,
    get_method,
    get_pagination_limit,
    get_path,
    get_query_string_parameters,
    match_path,
)
from course_progression.utils.aws_env_vars import get_notifications_table_name
from course_progression.utils.base_types import LearnerId, NotificationId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class NotificationsApiHandler:
    def __init__(self, notifications_table: NotificationsTable):
        self.notifications_table = notifications_table

    def _handle_get_notifications(self, learner_id: LearnerId, event: dict) -> dict:
        query_params = get_query_string_parameters(event)
        notifications, last_evaluated_key = self.notifications_table.get_notifications_for_learner(
            learner_id,
            limit=get_pagination_limit(query_params),
            last_evaluated_key=get_last_evaluated_key(query_params),
        )
        response = ListOfNotificationsResponseModel(notifications=notifications, lastEvaluatedKey=last_evaluated_key)
        return format_lambda_response(200, response.model_dump(exclude_none=True), event=event)

    def _handle_put_read(self, learner_id: LearnerId, notification_id: NotificationId, event: dict) -> dict:
        if not self.notifications_table.mark_as_read(learner_id, notification_id):
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "Notification not found.", event=event)
        return format_lambda_response(200, {"notificationId": notification_id, "isRead": True}, event=event)

    def _handle_delete(self, learner_id: LearnerId, notification_id: NotificationId, event: dict) -> dict:
        if not self.notifications_table.delete_notification(learner_id, notification_id):
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "Notification not found.", event=event)
        return format_lambda_response(200, {"notificationId": notification_id, "deleted": True}, event=event)

    def handle(self, event: dict) -> dict:
        learner_id = get_learner_id_from_event(event)
        if not learner_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path = get_path(event)
        _LOGGER.info(f"NotificationsApiHandler: {http_method} {path} for learner: {learner_id}")

        try:
            if http_method == "GET" and match_path("/notifications", path) is not None:
                return self._handle_get_notifications(learner_id, event)

            read_params = match_path("/notifications/{notificationId}/read", path)
            if http_method == "PUT" and read_params is not None:
                return self._handle_put_read(learner_id, NotificationId(read_params["notificationId"]), event)

            notification_params = match_path("/notifications/{notificationId}", path)
            if http_method == "DELETE" and notification_params is not None:
                return self._handle_delete(learner_id, NotificationId(notification_params["notificationId"]), event)

            _LOGGER.warning(f"Unsupported path or method for notifications: {http_method} {path}")
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        except ClientError as e:
            _LOGGER.error(f"DynamoDB error in NotificationsApiHandler: {e.response['Error']['Message']}")
            return create_error_response(ErrorCode.STORE_UNAVAILABLE, event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in NotificationsApiHandler for {learner_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def notifications_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global notifications_lambda_handler received event.")

    try:
        api_handler = NotificationsApiHandler(NotificationsTable(get_notifications_table_name()))
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in notifications_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during NotificationsApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
