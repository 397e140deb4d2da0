from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class StudentListItem(BaseModel):
    id: UUID = Field(..., alias="_id")
    name: str
    email: str
    classOrBatch: Optional[str] = None
    enrollment: Optional[str] = None
    batch: Optional[str] = None
    section: Optional[str] = None

    class Config:
        populate_by_name = True
