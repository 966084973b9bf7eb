import typing

LearnerId = typing.NewType("LearnerId", str)

CourseId = typing.NewType("CourseId", str)
ModuleId = typing.NewType("ModuleId", str)
VideoId = typing.NewType("VideoId", str)
QuestionId = typing.NewType("QuestionId", str)
NotificationId = typing.NewType("NotificationId", str)
IsoTimestamp = typing.NewType("IsoTimestamp", str)
