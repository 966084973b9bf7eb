import logging
import typing
import uuid
from datetime import datetime, timezone

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import ValidationError

from course_progression.models.achievement_models import NotificationModel, NotificationType
from course_progression.utils.base_types import IsoTimestamp, LearnerId, NotificationId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class NotificationsTable:
    """
    Data Abstraction Layer for the learner Notifications DynamoDB table.

    Writing a row is how this service "emits" a notification; delivering it to the
    learner (polling, websockets, ...) is the job of whatever reads the table.

    Table Schema:
      - PK: learnerId (String)
      - SK: notificationId (String - "createdAtIso#uuid", so a query returns them in time order)
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def _make_notification_id(self, created_at: IsoTimestamp) -> NotificationId:
        return NotificationId(f"{created_at}#{uuid.uuid4()}")

    def save_notification(
        self,
        learner_id: LearnerId,
        title: str,
        message: str,
        notification_type: NotificationType = "info",
    ) -> NotificationModel:
        created_at = IsoTimestamp(datetime.now(timezone.utc).isoformat())
        notification = NotificationModel(
            learnerId=learner_id,
            notificationId=self._make_notification_id(created_at),
            title=title,
            message=message,
            notificationType=notification_type,
            isRead=False,
            createdAt=created_at,
        )
        try:
            self.table.put_item(Item=notification.model_dump(exclude_none=True))
            _LOGGER.info(f"Notification '{title}' ({notification_type}) stored for learner {learner_id}.")
            return notification
        except ClientError as e:
            _LOGGER.error(f"Failed to store notification for learner {learner_id}: {e.response['Error']['Message']}")
            raise

    def emit(
        self,
        learner_id: LearnerId,
        title: str,
        message: str,
        notification_type: NotificationType,
    ) -> None:
        self.save_notification(learner_id, title, message, notification_type)

    def get_notifications_for_learner(
        self,
        learner_id: LearnerId,
        limit: typing.Optional[int] = None,
        last_evaluated_key: typing.Optional[dict] = None,
    ) -> typing.Tuple[list[NotificationModel], typing.Optional[dict]]:
        """
        Retrieves a learner's notifications, newest first.

        :return: Tuple of (notifications, next pagination token)
        """
        query_kwargs: dict[str, typing.Any] = {
            "KeyConditionExpression": Key("learnerId").eq(learner_id),
            "ScanIndexForward": False,
        }
        if limit:
            query_kwargs["Limit"] = limit
        if last_evaluated_key:
            query_kwargs["ExclusiveStartKey"] = last_evaluated_key

        notifications: list[NotificationModel] = []
        try:
            response = self.table.query(**query_kwargs)
            for item_data in response.get("Items", []):
                try:
                    notifications.append(NotificationModel.model_validate(item_data))
                except ValidationError as ve:
                    _LOGGER.warning(f"Skipping invalid notification for learner {learner_id}: {item_data}. {ve}")
            _LOGGER.info(f"Fetched {len(notifications)} notifications for learner {learner_id}.")
            return notifications, response.get("LastEvaluatedKey")
        except ClientError as e:
            _LOGGER.error(f"Error fetching notifications for learner {learner_id}: {e.response['Error']['Message']}")
            raise

    def mark_as_read(self, learner_id: LearnerId, notification_id: NotificationId) -> bool:
        """
        Marks a single notification as read.

        :return: True if the notification existed and was updated, False if it does not exist.
        """
        try:
            self.table.update_item(
                Key={"learnerId": learner_id, "notificationId": notification_id},
                UpdateExpression="SET #isRead = :isRead",
                ConditionExpression="attribute_exists(notificationId)",
                ExpressionAttributeNames={"#isRead": "isRead"},
                ExpressionAttributeValues={":isRead": True},
            )
            _LOGGER.info(f"Notification {notification_id} marked read for learner {learner_id}.")
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.info(f"Notification {notification_id} not found for learner {learner_id}.")
                return False
            _LOGGER.error(
                f"Error marking notification {notification_id} read for {learner_id}: "
                f"{e.response['Error']['Message']}"
            )
            raise

    def delete_notification(self, learner_id: LearnerId, notification_id: NotificationId) -> bool:
        """
        Deletes one of the learner's notifications.

        :return: True if the notification existed and was deleted, False if it does not exist.
        """
        try:
            self.table.delete_item(
                Key={"learnerId": learner_id, "notificationId": notification_id},
                ConditionExpression="attribute_exists(notificationId)",
            )
            _LOGGER.info(f"Notification {notification_id} deleted for learner {learner_id}.")
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.info(f"Notification {notification_id} not found for learner {learner_id}.")
                return False
            _LOGGER.error(
                f"Error deleting notification {notification_id} for {learner_id}: {e.response['Error']['Message']}"
            )
            raise
