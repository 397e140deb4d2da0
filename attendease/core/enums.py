from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class AssignmentRole(str, Enum):
    TEACHING = "teaching"
    MENTORSHIP = "mentorship"


class SlotType(str, Enum):
    THEORY = "theory"
    LAB = "lab"
    TUTORIAL = "tutorial"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
