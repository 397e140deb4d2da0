from typing import Dict, List

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SchedulingConflictError(ServiceError):
    """A timetable slot overlaps an existing slot for the same section or teacher."""

    def __init__(self, details: str, conflicts: List[Dict[str, str]]) -> None:
        super().__init__("Timetable scheduling conflict", status.HTTP_400_BAD_REQUEST)
        self.details = details
        self.conflicts = conflicts

    def to_dict(self) -> Dict:
        return {"error": self.message, "details": self.details, "conflicts": self.conflicts}
