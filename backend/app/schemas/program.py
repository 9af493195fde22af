# app/schemas/program.py
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Program(BaseModel):
    id: str
    title: str
    type: Optional[str] = None  # education / business
    status: Optional[str] = None  # active / closed / draft
    description: Optional[str] = None
    budget: Optional[float] = None
    eligibility: Optional[str] = None
    deadline: Optional[str] = None
    created_at: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
