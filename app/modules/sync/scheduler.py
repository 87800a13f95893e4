import asyncio
import logging
from app.config.settings import settings
from app.core.time_utils import utcnow
from app.database.supabase_client import get_service_supabase
from app.integrations.stripe_client import get_stripe_client
from app.modules.daily_access.service import DailyAccessService
from app.modules.memberships.service import MembershipService
from app.modules.sync.schemas import JobStatus, SchedulerStatus
from app.modules.sync.service import SyncService
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


def run_stripe_sync() -> Dict[str, Any]:
    """Re-project every Stripe subscription onto memberships"""
    service = SyncService(get_service_supabase(), get_stripe_client())
    return service.sync_subscriptions_from_stripe().model_dump()


def run_daily_access_rollover() -> Dict[str, Any]:
    """Advance Daily Access selections and close finished trials"""
    supabase = get_service_supabase()
    rollover = DailyAccessService(supabase).rollover_cycles()
    expired = MembershipService(supabase).expire_trials()
    return {**rollover.model_dump(), "expired_trials": expired}


class Job:
    def __init__(self, name: str, func: Callable[[], Dict[str, Any]], interval_minutes: int):
        self.name = name
        self.func = func
        self.interval_minutes = interval_minutes
        self.task: Optional[asyncio.Task] = None
        self.last_run = None
        self.last_error: Optional[str] = None
        self.last_result: Optional[Dict[str, Any]] = None

    async def run_once(self) -> Optional[Dict[str, Any]]:
        try:
            # Supabase and Stripe clients are blocking
            self.last_result = await asyncio.to_thread(self.func)
            self.last_error = None
        except Exception as e:
            logger.error(f"Error in scheduled job {self.name}: {str(e)}")
            self.last_error = str(e)
            self.last_result = None
        self.last_run = utcnow()
        return self.last_result

    async def loop(self):
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_minutes * 60)

    def status(self) -> JobStatus:
        return JobStatus(
            name=self.name,
            interval_minutes=self.interval_minutes,
            running=self.task is not None and not self.task.done(),
            last_run=self.last_run,
            last_error=self.last_error,
            last_result=self.last_result,
        )


class BackgroundScheduler:
    def __init__(self, jobs: Dict[str, Job]):
        self.jobs = jobs

    @property
    def running(self) -> bool:
        return any(job.task is not None and not job.task.done() for job in self.jobs.values())

    def start(self) -> bool:
        """Start job loops on the running event loop. False if already running."""
        if self.running:
            return False
        for job in self.jobs.values():
            job.task = asyncio.create_task(job.loop(), name=f"job:{job.name}")
            logger.info(f"Started background job {job.name} (every {job.interval_minutes} min)")
        return True

    async def stop(self) -> bool:
        if not self.running:
            return False
        for job in self.jobs.values():
            if job.task is not None:
                job.task.cancel()
        await asyncio.gather(*(j.task for j in self.jobs.values() if j.task is not None), return_exceptions=True)
        for job in self.jobs.values():
            job.task = None
        logger.info("Background jobs stopped")
        return True

    async def trigger(self, name: str) -> Optional[Dict[str, Any]]:
        job = self.jobs.get(name)
        if job is None:
            raise KeyError(name)
        logger.info(f"Manually triggering job {name}")
        return await job.run_once()

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(running=self.running, jobs=[j.status() for j in self.jobs.values()])


scheduler = BackgroundScheduler({
    "stripe_sync": Job("stripe_sync", run_stripe_sync, settings.sync_interval_minutes),
    "daily_access_rollover": Job("daily_access_rollover", run_daily_access_rollover,
                                 settings.daily_access_interval_minutes),
})
