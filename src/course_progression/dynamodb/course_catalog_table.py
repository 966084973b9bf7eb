import logging
import typing

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from course_progression.models.course_models import CourseModel
from course_progression.utils.base_types import CourseId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class CourseCatalogTable:
    """
    Data Abstraction Layer for the authored course hierarchy.
    Each item is a whole CourseModel document (modules, videos, quiz questions).

    Table Schema:
      - PK: courseId
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def get_course(self, course_id: CourseId) -> typing.Optional[CourseModel]:
        """
        :return: CourseModel instance if found and valid, else None.
        """
        _LOGGER.debug(f"Fetching course: {course_id}")
        try:
            response = self.table.get_item(Key={"courseId": course_id})
            item_data = response.get("Item")
            if item_data:
                return CourseModel.model_validate(item_data)
            _LOGGER.info(f"No course found for course_id: {course_id}")
            return None
        except ClientError as e:
            _LOGGER.error(f"Failed to get course {course_id}: {e.response['Error']['Message']}")
            raise
        except ValidationError as ve:
            _LOGGER.error(f"Failed to validate course data for {course_id}: {ve}", exc_info=True)
            return None

    def put_course(self, course: CourseModel) -> None:
        """Stores a course document as produced by the authoring tools."""
        try:
            self.table.put_item(Item=course.model_dump(exclude_none=True))
            _LOGGER.info(f"Stored course {course.courseId} with {len(course.modules)} modules.")
        except ClientError as e:
            _LOGGER.error(f"Failed to store course {course.courseId}: {e.response['Error']['Message']}")
            raise
