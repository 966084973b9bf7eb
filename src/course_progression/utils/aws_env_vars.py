import os

DEFAULT_METRICS_NAMESPACE = "CourseProgression"


def _get_resource_by_env_var(env_var: str) -> str:
    table_name = os.environ.get(env_var)
    if not table_name:
        raise ValueError(f"Missing environment variable: {env_var}")
    return table_name


def get_course_catalog_table_name() -> str:
    return _get_resource_by_env_var("COURSE_CATALOG_TABLE_NAME")


def get_video_progress_table_name() -> str:
    return _get_resource_by_env_var("VIDEO_PROGRESS_TABLE_NAME")


def get_quiz_answers_table_name() -> str:
    return _get_resource_by_env_var("QUIZ_ANSWERS_TABLE_NAME")


def get_module_completions_table_name() -> str:
    return _get_resource_by_env_var("MODULE_COMPLETIONS_TABLE_NAME")


def get_achievements_table_name() -> str:
    return _get_resource_by_env_var("ACHIEVEMENTS_TABLE_NAME")


def get_notifications_table_name() -> str:
    return _get_resource_by_env_var("NOTIFICATIONS_TABLE_NAME")


def get_metrics_namespace() -> str:
    """
    CloudWatch namespace for embedded metrics.
    Defaults to DEFAULT_METRICS_NAMESPACE if not set.
    """
    return os.environ.get("METRICS_NAMESPACE") or DEFAULT_METRICS_NAMESPACE
