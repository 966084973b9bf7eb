REGION = "us-west-1"

VIDEO_PROGRESS_TABLE = "VideoProgressTable"
QUIZ_ANSWERS_TABLE = "QuizAnswersTable"
MODULE_COMPLETIONS_TABLE = "ModuleCompletionsTable"
ACHIEVEMENTS_TABLE = "AchievementsTable"
NOTIFICATIONS_TABLE = "NotificationsTable"
COURSE_CATALOG_TABLE = "CourseCatalogTable"


def create_table(dynamodb, table_name: str, partition_key: str, sort_key: str | None = None) -> None:
    """Creates a string-keyed, on-demand table in the (mocked) DynamoDB resource."""
    key_schema = [{"AttributeName": partition_key, "KeyType": "HASH"}]
    attribute_definitions = [{"AttributeName": partition_key, "AttributeType": "S"}]
    if sort_key:
        key_schema.append({"AttributeName": sort_key, "KeyType": "RANGE"})
        attribute_definitions.append({"AttributeName": sort_key, "AttributeType": "S"})

    table = dynamodb.create_table(
        TableName=table_name,
        KeySchema=key_schema,
        AttributeDefinitions=attribute_definitions,
        BillingMode="PAY_PER_REQUEST",
    )
    table.wait_until_exists()


def create_progress_tables(dynamodb) -> None:
    create_table(dynamodb, VIDEO_PROGRESS_TABLE, "learnerId", "videoId")
    create_table(dynamodb, QUIZ_ANSWERS_TABLE, "learnerId", "questionId")
    create_table(dynamodb, MODULE_COMPLETIONS_TABLE, "learnerId", "moduleId")


def create_all_tables(dynamodb) -> None:
    create_progress_tables(dynamodb)
    create_table(dynamodb, ACHIEVEMENTS_TABLE, "learnerId", "achievementKey")
    create_table(dynamodb, NOTIFICATIONS_TABLE, "learnerId", "notificationId")
    create_table(dynamodb, COURSE_CATALOG_TABLE, "courseId")
