"""Schemas for the gated AI workflows"""
from pydantic import BaseModel, Field
from typing import Optional


class CreateInterviewRequest(BaseModel):
    job_role: str = Field(..., min_length=1)
    experience_level: str = Field(..., min_length=1)
    interview_type: str = Field(..., min_length=1)
    company: Optional[str] = None
    job_description: Optional[str] = None
    num_questions: Optional[int] = Field(None, ge=3, le=15)


class CreateVoiceInterviewRequest(CreateInterviewRequest):
    interview_role: Optional[str] = None
    difficulty: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=1, le=120)


class RAGRequest(BaseModel):
    message: str = Field(..., min_length=1)
