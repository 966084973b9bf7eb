import typing

import pydantic

from course_progression.utils.base_types import IsoTimestamp, LearnerId, ModuleId, NotificationId

AchievementType = typing.Literal["module_completion", "course_completion", "perfect_score", "other"]
NotificationType = typing.Literal["success", "warning", "error", "info"]

ACHIEVEMENT_TITLES: dict[str, str] = {
    "module_completion": "Module Completed",
    "course_completion": "Course Completed",
    "perfect_score": "Perfect Score",
}
DEFAULT_ACHIEVEMENT_TITLE = "Achievement"


def get_achievement_title(achievement_type: str) -> str:
    return ACHIEVEMENT_TITLES.get(achievement_type, DEFAULT_ACHIEVEMENT_TITLE)


class AchievementModel(pydantic.BaseModel):
    """
    An achievement earned by a learner. Immutable once stored.
    For course_completion achievements moduleId holds the course's id.
    """

    learnerId: LearnerId
    moduleId: ModuleId
    achievementType: AchievementType = "module_completion"
    earnedAt: IsoTimestamp


class AchievementViewModel(pydantic.BaseModel):
    moduleId: ModuleId
    achievementType: AchievementType
    title: str
    earnedAt: IsoTimestamp


class ListOfAchievementsResponseModel(pydantic.BaseModel):
    learnerId: LearnerId
    achievements: list[AchievementViewModel]


class NotificationModel(pydantic.BaseModel):
    """
    Pydantic model representing a notification stored in DynamoDB.
    Rows are read by the push/polling layer that delivers them to the learner.
    """

    learnerId: LearnerId = pydantic.Field(description="Partition Key")
    notificationId: NotificationId = pydantic.Field(description="Sort Key: createdAt#uuid")
    title: str
    message: str
    notificationType: NotificationType = "info"
    isRead: bool = False
    createdAt: IsoTimestamp


class ListOfNotificationsResponseModel(pydantic.BaseModel):
    notifications: list[NotificationModel]
    lastEvaluatedKey: typing.Optional[dict] = None
