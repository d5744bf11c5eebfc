# core/model.py
from pydantic import BaseModel, ConfigDict
from typing import Optional, Literal, List

JobStatus = Literal["queued", "in_progress", "completed"]


class GeneratedImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    file_name: str
    content_type: str

    @property
    def id(self) -> str:
        # URL là định danh duy nhất của ảnh
        return self.url


class GeneratedImageResult(BaseModel):
    images: List[GeneratedImage]
    description: str = ""


class LogLine(BaseModel):
    message: str
    level: Optional[str] = None
    timestamp: Optional[str] = None


class JobEvent(BaseModel):
    job_id: str  # prompt gốc
    status: JobStatus
    logs: List[LogLine] = []
    queue_position: Optional[int] = None
    result: Optional[GeneratedImageResult] = None
