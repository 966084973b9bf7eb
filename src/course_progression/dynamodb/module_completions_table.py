import logging
import typing

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import ValidationError

from course_progression.models.progress_models import ModuleCompletionRecordModel
from course_progression.utils.base_types import LearnerId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class ModuleCompletionsTable:
    """
    A wrapper class to abstract DynamoDB operations for the ModuleCompletions table.
    Assumes table has PK: learnerId, SK: moduleId.
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def get_all_module_completions_for_learner(self, learner_id: LearnerId) -> list[ModuleCompletionRecordModel]:
        _LOGGER.info(f"Fetching all module completions for learner_id: {learner_id}")
        completions: list[ModuleCompletionRecordModel] = []
        query_kwargs: dict[str, typing.Any] = {"KeyConditionExpression": Key("learnerId").eq(learner_id)}
        try:
            while True:
                response = self.table.query(**query_kwargs)
                for item_data in response.get("Items", []):
                    try:
                        completions.append(ModuleCompletionRecordModel.model_validate(item_data))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid module completion for {learner_id}: {item_data}. {ve}")

                if "LastEvaluatedKey" not in response:
                    break
                query_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

        except ClientError as e:
            _LOGGER.error(f"Failed to query module completions for {learner_id}: {e.response['Error']['Message']}")
            raise
        return completions

    def put_module_completion(self, record: ModuleCompletionRecordModel) -> None:
        try:
            self.table.put_item(Item=record.model_dump(exclude_none=True))
            _LOGGER.info(f"Stored module completion for learner {record.learnerId}, module {record.moduleId}.")
        except ClientError as e:
            _LOGGER.error(
                f"Failed to store module completion for learner {record.learnerId}, module {record.moduleId}: "
                f"{e.response['Error']['Message']}"
            )
            raise
