from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class HealthTipCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=500)
    category: str = Field(..., min_length=1, max_length=50)
    tags: List[str] = []
    source: Optional[str] = None


class HealthTipResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    content: str
    category: str
    source: Optional[str] = None
    tags: List[str] = []
    views: int = 0
    is_active: bool = True
    last_displayed: Optional[str] = None


class HealthTipListResponse(BaseModel):
    count: int
    tips: List[HealthTipResponse]
