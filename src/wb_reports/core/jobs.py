"""
Asynchronous report job runner.

Wildberries generates paid storage and paid acceptance reports server-side:
a creation call returns a taskId, the status endpoint is polled until the
task leaves the pending state, then the result is downloaded exactly once.
The protocol is identical across report kinds, so it is implemented once and
parameterized by JobEndpoints.
"""

import json
from datetime import date
from typing import Any, Dict, List, Optional

from wb_reports.api.client import RateLimitedHttpClient
from wb_reports.api.endpoints import JobEndpoints
from wb_reports.core.models import AsyncJob, JobStatus
from wb_reports.utils.exceptions import (
    JobCreationFailedError, JobTimeoutError, MalformedResponseError,
    UpstreamJobFailedError
)
from wb_reports.utils.logger import get_logger
from wb_reports.utils.rate_limiting import Phase, Sleeper


logger = get_logger(__name__)


class AsyncReportJobRunner:
    """Create -> poll -> download state machine for upstream report tasks."""

    def __init__(self, client: RateLimitedHttpClient,
                 poll_interval: float = 5.0,
                 max_polls: int = 60,
                 sleeper: Optional[Sleeper] = None):
        """
        Initialize the runner.

        Args:
            client: HTTP client bound to the seller's credential
            poll_interval: Seconds to wait before every status call
            max_polls: Status calls allowed before JobTimeoutError
            sleeper: Suspension point for poll waits
        """
        if max_polls < 1:
            raise ValueError("max_polls must be at least 1")
        self.client = client
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.sleeper = sleeper or client.sleeper

    async def create(self, endpoints: JobEndpoints, date_from: date, date_to: date,
                     extra_params: Optional[Dict[str, Any]] = None) -> AsyncJob:
        """
        Issue the job creation call.

        Returns:
            AsyncJob in pending state

        Raises:
            JobCreationFailedError: If the response carries no taskId
            MalformedResponseError: If the response is not JSON
        """
        params = {"dateFrom": date_from.isoformat(), "dateTo": date_to.isoformat()}
        if extra_params:
            params.update(extra_params)

        logger.info(f"📤 Creating {endpoints.name} task for {params['dateFrom']} - {params['dateTo']}")
        data = await self.client.call_json("GET", endpoints.create_url, params=params)

        task_id = None
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            task_id = data["data"].get("taskId")

        if not task_id:
            logger.error(f"❌ No taskId in {endpoints.name} creation response: {data}")
            raise JobCreationFailedError(
                f"Upstream did not return a taskId for {endpoints.name}",
                job_name=endpoints.name,
                response_data=data
            )

        logger.info(f"✅ Created {endpoints.name} task: {task_id}")
        return AsyncJob(task_id=str(task_id), name=endpoints.name)

    async def poll(self, endpoints: JobEndpoints, job: AsyncJob) -> JobStatus:
        """
        Make one status call and record the result on the job.

        Raises:
            MalformedResponseError: If the status body has an unexpected shape
        """
        url = endpoints.status_for(job.task_id)
        data = await self.client.call_json("GET", url)
        job.polls += 1

        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            raise MalformedResponseError(
                f"Unexpected status response for task {job.task_id}",
                response_data=data,
                endpoint=url
            )

        raw_status = data["data"].get("status")
        job.status = JobStatus.from_upstream(raw_status)
        logger.debug(f"Task {job.task_id} status: {raw_status} (poll {job.polls}/{self.max_polls})")
        return job.status

    async def wait(self, endpoints: JobEndpoints, job: AsyncJob) -> AsyncJob:
        """
        Poll until the job leaves the pending state.

        Raises:
            UpstreamJobFailedError: If the upstream reports an error status
            JobTimeoutError: After max_polls status calls still pending
        """
        while job.polls < self.max_polls:
            await self.sleeper.sleep(self.poll_interval, Phase.AWAITING_JOB,
                                     f"{endpoints.name} task {job.task_id}")
            status = await self.poll(endpoints, job)

            if status is JobStatus.DONE:
                logger.info(f"✅ Task {job.task_id} ready after {job.polls} polls")
                return job
            if status is JobStatus.ERROR:
                logger.error(f"❌ Task {job.task_id} failed upstream")
                raise UpstreamJobFailedError(
                    f"Upstream {endpoints.name} task failed",
                    task_id=job.task_id,
                    status=job.status.value
                )

        logger.error(f"❌ Task {job.task_id} still pending after {job.polls} polls")
        raise JobTimeoutError(
            f"{endpoints.name} task {job.task_id} did not finish in {self.max_polls} polls",
            task_id=job.task_id,
            polls=job.polls
        )

    async def download(self, endpoints: JobEndpoints, job: AsyncJob) -> List[Dict[str, Any]]:
        """
        Download the finished report once.

        An empty, non-JSON or non-array body means the upstream has no data
        for the period and yields an empty list.
        """
        url = endpoints.download_for(job.task_id)
        response = await self.client.call("GET", url)

        text = response.text or ""
        if not text.strip():
            logger.warning(f"⚠️ Empty {endpoints.name} download for task {job.task_id}")
            return []

        try:
            data = json.loads(text)
        except ValueError:
            logger.warning(f"⚠️ Non-JSON {endpoints.name} download for task {job.task_id}: {text[:100]}")
            return []

        if not isinstance(data, list):
            logger.warning(f"⚠️ {endpoints.name} download is not an array, treating as no data")
            return []

        logger.info(f"📥 Downloaded {len(data)} {endpoints.name} records")
        return data

    async def run(self, endpoints: JobEndpoints, date_from: date, date_to: date,
                  extra_params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Create, wait for and download one report task."""
        job = await self.create(endpoints, date_from, date_to, extra_params)
        await self.wait(endpoints, job)
        return await self.download(endpoints, job)
