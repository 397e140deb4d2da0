from attendease.core.models.attendance import Attendance, ClassSnapshot
from attendease.core.models.subject import Subject
from attendease.core.models.timetable import Timetable

__all__ = [
    "Attendance",
    "ClassSnapshot",
    "Subject",
    "Timetable",
]
