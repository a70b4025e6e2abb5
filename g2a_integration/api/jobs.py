# g2a_integration/api/jobs.py
import asyncio
import time

from g2a_integration.api.base import BaseAPI
from g2a_integration.exceptions import G2AError, G2AErrorCode
from g2a_integration.schemas import Job, JobStatus, TERMINAL_FAILURE_STATUSES


class JobsAPI(BaseAPI):
    """Status of asynchronous Import API operations such as offer creation."""

    scope = "/jobs"

    async def get(self, job_id: str) -> Job:
        data = await self._request("get", "GET", f"/jobs/{job_id}")
        job = self._parse(Job, data, "get")
        self.logger.debug("Job status fetched", job_id=job_id, status=job.status.value, resource_id=job.resource_id)
        return job

    async def wait_for_completion(self, job_id: str, max_wait: float = 60.0, poll_interval: float = 2.0) -> Job:
        """
        Poll until the job completes.

        Raises:
            G2AError: API_ERROR if the job fails or is cancelled,
                TIMEOUT once ``max_wait`` seconds have elapsed
        """
        start_time = time.monotonic()
        self.logger.info("Waiting for job completion", job_id=job_id, max_wait=max_wait, poll_interval=poll_interval)

        while True:
            elapsed = time.monotonic() - start_time
            if elapsed > max_wait:
                raise G2AError(
                    G2AErrorCode.TIMEOUT,
                    f"Job {job_id} did not complete within {max_wait}s",
                    retryable=False,
                    endpoint=self.scope,
                    context={"job_id": job_id, "max_wait": max_wait, "elapsed": round(elapsed, 3)},
                )

            job = await self.get(job_id)
            if job.status == JobStatus.COMPLETED:
                self.logger.info("Job completed", job_id=job_id, resource_id=job.resource_id, elapsed=round(elapsed, 3))
                return job

            if job.status in TERMINAL_FAILURE_STATUSES:
                raise G2AError(
                    G2AErrorCode.API_ERROR,
                    f"Job {job_id} {job.status.value}: {job.message or 'Unknown error'}",
                    retryable=False,
                    error_code=job.code,
                    endpoint=self.scope,
                    context={"job_id": job_id, "status": job.status.value, "message": job.message},
                )

            self.logger.debug("Job still processing", job_id=job_id, status=job.status.value, elapsed=round(elapsed, 3))
            await asyncio.sleep(poll_interval)
