import logging
import typing

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import ValidationError

from course_progression.models.progress_models import QuizAnswerRecordModel
from course_progression.utils.base_types import LearnerId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class QuizAnswersTable:
    """
    Data Abstraction Layer for learners' answers to video verification questions.

    Table Schema:
      - PK: learnerId (String)
      - SK: questionId (String)

    One item per (learner, question); a new answer overwrites the previous one.
    """

    def __init__(self, table_name: str):
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)
        _LOGGER.info(f"QuizAnswersTable initialized for table: {table_name}")

    def put_quiz_answer(self, record: QuizAnswerRecordModel) -> None:
        try:
            self.table.put_item(Item=record.model_dump(exclude_none=True))
            _LOGGER.info(
                f"Stored quiz answer for learner {record.learnerId}, question {record.questionId} "
                f"(correct={record.isCorrect})"
            )
        except ClientError as e:
            _LOGGER.error(
                f"Failed to store quiz answer for learner {record.learnerId}, question {record.questionId}: "
                f"{e.response['Error']['Message']}"
            )
            raise

    def get_all_quiz_answers_for_learner(self, learner_id: LearnerId) -> list[QuizAnswerRecordModel]:
        _LOGGER.info(f"Fetching all quiz answers for learner_id: {learner_id}")
        answers: list[QuizAnswerRecordModel] = []
        query_kwargs: dict[str, typing.Any] = {"KeyConditionExpression": Key("learnerId").eq(learner_id)}
        try:
            while True:
                response = self.table.query(**query_kwargs)
                for item_data in response.get("Items", []):
                    try:
                        answers.append(QuizAnswerRecordModel.model_validate(item_data))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid quiz answer for learner {learner_id}: {item_data}. {ve}")

                if "LastEvaluatedKey" not in response:
                    break
                query_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

        except ClientError as e:
            _LOGGER.error(f"Failed to query quiz answers for learner {learner_id}: {e.response['Error']['Message']}")
            raise

        _LOGGER.info(f"Fetched {len(answers)} quiz answers for learner {learner_id}.")
        return answers
