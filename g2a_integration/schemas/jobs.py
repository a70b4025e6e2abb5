from enum import Enum
from typing import Optional

from pydantic import Field

from g2a_integration.schemas.base import G2ABaseSchema


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_FAILURE_STATUSES = (JobStatus.FAILED, JobStatus.CANCELLED)


class Job(G2ABaseSchema):
    job_id: str = Field(..., alias="jobId")
    resource_id: Optional[str] = Field(None, alias="resourceId")
    resource_type: Optional[str] = Field(None, alias="resourceType")
    status: JobStatus
    code: Optional[str] = None
    message: Optional[str] = None
