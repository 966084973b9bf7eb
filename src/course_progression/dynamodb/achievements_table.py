import logging
import typing

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import ValidationError

from course_progression.models.achievement_models import AchievementModel, AchievementType
from course_progression.utils.base_types import LearnerId, ModuleId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class AchievementsTable:
    """
    Data Abstraction Layer for learners' earned achievements.

    Achievements are append-only and unique per (learner, type, module): the sort key
    encodes type and module, and writes are conditional, so repeated awards for the same
    completion never create a second row.

    Table Schema:
      - PK: learnerId (String)
      - SK: achievementKey (String - e.g., "module_completion#moduleId")
    """

    def __init__(self, table_name: str):
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)
        _LOGGER.info(f"AchievementsTable initialized for table: {table_name}")

    def _make_achievement_key(self, achievement_type: AchievementType, module_id: ModuleId) -> str:
        return f"{achievement_type}#{module_id}"

    def save_achievement(self, achievement: AchievementModel) -> bool:
        """
        Stores an achievement unless the learner already holds the same one.

        :return: True if a new achievement row was written, False if it already existed.
        :raises ClientError: For any failure other than the uniqueness check.
        """
        achievement_key = self._make_achievement_key(achievement.achievementType, achievement.moduleId)
        item_to_save = {"achievementKey": achievement_key, **achievement.model_dump(exclude_none=True)}

        try:
            self.table.put_item(
                Item=item_to_save,
                ConditionExpression="attribute_not_exists(learnerId) AND attribute_not_exists(achievementKey)",
            )
            _LOGGER.info(f"Achievement {achievement_key} saved for learner '{achievement.learnerId}'.")
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.info(f"Achievement {achievement_key} already exists for '{achievement.learnerId}'. Skipping.")
                return False
            _LOGGER.error(
                f"Error saving achievement {achievement_key} for learner '{achievement.learnerId}': "
                f"{e.response['Error']['Message']}"
            )
            raise

    def get_achievements_for_learner(self, learner_id: LearnerId) -> list[AchievementModel]:
        _LOGGER.info(f"Fetching achievements for learner_id: {learner_id}")
        achievements: list[AchievementModel] = []
        query_kwargs: dict[str, typing.Any] = {"KeyConditionExpression": Key("learnerId").eq(learner_id)}
        try:
            while True:
                response = self.table.query(**query_kwargs)
                for item_data in response.get("Items", []):
                    try:
                        achievements.append(AchievementModel.model_validate(item_data))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid achievement for learner {learner_id}: {item_data}. {ve}")

                if "LastEvaluatedKey" not in response:
                    break
                query_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

        except ClientError as e:
            _LOGGER.error(f"Failed to query achievements for learner {learner_id}: {e.response['Error']['Message']}")
            raise

        achievements.sort(key=lambda achievement: achievement.earnedAt, reverse=True)
        return achievements
