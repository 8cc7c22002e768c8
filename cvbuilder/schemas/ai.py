from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from .cv import CamelModel

RoleLevel = Literal["entry", "mid", "senior", "executive"]


class JobAnalysisRequest(CamelModel):
    job_description: str = Field(min_length=50, max_length=20000)


class BulletPointRequest(CamelModel):
    job_title: str = Field(min_length=2)
    company: str = Field(min_length=2)
    industry: str = Field(min_length=2)
    responsibilities: List[str] = Field(min_length=1)
    achievements: List[str] = Field(min_length=1)
    skills: List[str] = Field(min_length=1)
    context: Optional[str] = None


class SummaryExperience(CamelModel):
    title: str
    company: str
    years: float = Field(ge=0)
    skills: List[str] = []


class SummaryRequest(CamelModel):
    experience: List[SummaryExperience] = Field(min_length=1)
    target_role: str = Field(min_length=2)
    industry: str = Field(min_length=2)
    level: RoleLevel
    tone: Literal["professional", "dynamic", "creative"] = "professional"


class ATSAnalysisRequest(CamelModel):
    """Either raw ``cvContent`` or the id of one of the caller's CVs."""
    cv_content: Optional[str] = Field(default=None, min_length=50)
    cv_id: Optional[str] = None
    job_description: Optional[str] = None
    target_keywords: Optional[List[str]] = None
    industry: Optional[str] = None

    @model_validator(mode="after")
    def check_source(self):
        if not self.cv_content and not self.cv_id:
            raise ValueError("Either cvContent or cvId is required")
        return self


class IndustryAnalysisRequest(CamelModel):
    industry: str = Field(min_length=2)
    role: str = Field(min_length=2)
    experience: str = Field(min_length=1)
    location: Optional[str] = None


class CoverLetterRequest(CamelModel):
    cv_data: Optional[Dict[str, Any]] = None
    cv_id: Optional[str] = None
    job_description: str = Field(min_length=50)
    company: str = Field(min_length=2)
    position: str = Field(min_length=2)
    tone: Literal["formal", "casual", "enthusiastic"] = "formal"
    length: Literal["short", "medium", "long"] = "medium"


class UsageQuery(BaseModel):
    range: Literal["day", "week", "month"] = "month"


class ChatMessage(CamelModel):
    id: str
    content: str
    role: Literal["user", "assistant"]
    timestamp: str


class ChatbotRequest(CamelModel):
    message: str = Field(min_length=1, max_length=1000)
    conversation_history: List[ChatMessage] = []
