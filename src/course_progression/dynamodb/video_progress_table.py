import logging
import typing

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import ValidationError

from course_progression.models.progress_models import VideoProgressRecordModel
from course_progression.utils.base_types import LearnerId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class VideoProgressTable:
    """
    A wrapper class to abstract DynamoDB operations for the VideoProgress table.
    Assumes table has PK: learnerId, SK: videoId.
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def get_all_video_progress_for_learner(self, learner_id: LearnerId) -> list[VideoProgressRecordModel]:
        """
        Retrieves all video progress items for a given learner by querying on the partition key.
        """
        _LOGGER.info(f"Fetching all video progress for learner_id: {learner_id}")
        progress_items: list[VideoProgressRecordModel] = []
        query_kwargs: dict[str, typing.Any] = {"KeyConditionExpression": Key("learnerId").eq(learner_id)}
        try:
            while True:
                response = self.table.query(**query_kwargs)
                for item_data in response.get("Items", []):
                    try:
                        progress_items.append(VideoProgressRecordModel.model_validate(item_data))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid video progress for learner {learner_id}: {item_data}. {ve}")

                if "LastEvaluatedKey" not in response:
                    break
                _LOGGER.info(f"Fetching next page of video progress for learner_id: {learner_id}")
                query_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

        except ClientError as e:
            _LOGGER.error(f"Failed to query video progress for learner {learner_id}: {e.response['Error']['Message']}")
            raise
        return progress_items

    def put_video_progress(self, record: VideoProgressRecordModel) -> None:
        """
        Writes the whole record, replacing any existing item for the same (learner, video).
        Fields that are None on the record are absent from the stored item afterwards.
        """
        try:
            self.table.put_item(Item=record.model_dump(exclude_none=True))
            _LOGGER.info(
                f"Stored video progress for learner {record.learnerId}, video {record.videoId}: "
                f"{record.completionPercentage}% (completedAt={record.completedAt})"
            )
        except ClientError as e:
            _LOGGER.error(
                f"Failed to store video progress for learner {record.learnerId}, video {record.videoId}: "
                f"{e.response['Error']['Message']}"
            )
            raise
