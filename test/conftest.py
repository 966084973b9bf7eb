"""
Pytest configuration and fixtures for all tests.

This file contains fixtures that are automatically available to all test files.
"""

import os
import typing

import pytest


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """
    Sets up environment variables required for all tests.

    Runs once per test session and applies to all tests (autouse=True). The values match
    what the Lambda configuration provides at runtime.
    """
    os.environ["AWS_REGION"] = "us-west-1"

    # DynamoDB Table Names
    os.environ["COURSE_CATALOG_TABLE_NAME"] = "test-course-catalog-table"
    os.environ["VIDEO_PROGRESS_TABLE_NAME"] = "test-video-progress-table"
    os.environ["QUIZ_ANSWERS_TABLE_NAME"] = "test-quiz-answers-table"
    os.environ["MODULE_COMPLETIONS_TABLE_NAME"] = "test-module-completions-table"
    os.environ["ACHIEVEMENTS_TABLE_NAME"] = "test-achievements-table"
    os.environ["NOTIFICATIONS_TABLE_NAME"] = "test-notifications-table"

    yield


@pytest.fixture(scope="function")
def aws_credentials() -> typing.Iterator[None]:
    """
    Mocks AWS credentials for moto (AWS mocking library).

    Used by DynamoDB table tests that run inside moto's mock_aws context.
    """
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-west-1"
    yield
    del os.environ["AWS_ACCESS_KEY_ID"]
    del os.environ["AWS_SECRET_ACCESS_KEY"]
    del os.environ["AWS_SECURITY_TOKEN"]
    del os.environ["AWS_SESSION_TOKEN"]
    del os.environ["AWS_DEFAULT_REGION"]
