import asyncio

from datetime import datetime, timezone
from typing import List

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from fiducia.data import UUID_TYPE, DataModel
from fiducia.error import FiduciaException

from . import config, logger
from .exceptions import InvalidState, NotYetExpired

SWEEP_JOB_ID = 'transfer-expiry-sweep'


class SweepResult(DataModel):
    expired: List[UUID_TYPE] = []
    skipped: List[UUID_TYPE] = []
    failed: List[UUID_TYPE] = []
    refunds: int = 0


class ExpirySweeper(object):
    '''
    Periodically expires pending transfers whose deadline has passed, then
    drives the refunds that are still pending.

    A transfer accepted (or expired) concurrently is skipped: the losing
    operation observes `InvalidState` and has no effect. Cycles never
    overlap, the scheduled job runs with a single instance.
    '''

    def __init__(self, service, *, interval=None, batch_size=None):
        self._service = service
        self.interval = config.SWEEP_INTERVAL_SECONDS if interval is None else interval
        self.batch_size = config.SWEEP_BATCH_SIZE if batch_size is None else batch_size
        self._scheduler = None
        self._stopped = None

    @property
    def running(self):
        return self._scheduler is not None and self._scheduler.running

    async def run_once(self) -> SweepResult:
        service = self._service
        now = service.domain.clock()
        expired, skipped, failed = [], [], []

        for transfer in await service.find_expired(now, limit=self.batch_size):
            try:
                await service.expire(transfer.id)
                expired.append(transfer.id)
            except (InvalidState, NotYetExpired) as e:
                logger.info('[SWEEPER] Transfer [%s] skipped: %s', transfer.id, e.message)
                skipped.append(transfer.id)
            except FiduciaException as e:
                logger.error('[SWEEPER] Unable to expire transfer [%s]: %s', transfer.id, e)
                failed.append(transfer.id)

        refunds = await service.redrive_refunds(limit=self.batch_size)

        result = SweepResult(expired=expired, skipped=skipped, failed=failed, refunds=refunds)
        if expired or skipped or failed or refunds:
            logger.info('[SWEEPER] Cycle at %s: %d expired, %d skipped, %d failed, %d refunds',
                        now, len(expired), len(skipped), len(failed), refunds)

        return result

    def start(self):
        ''' Schedule `run_once` every `interval` seconds, starting now.
            Must be called with a running event loop. '''
        if self.running:
            return self._scheduler

        scheduler = AsyncIOScheduler(timezone='UTC')
        scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self.interval),
            id=SWEEP_JOB_ID,
            name='Expire overdue transfers',
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        scheduler.start()

        self._scheduler = scheduler
        self._stopped = asyncio.Event()
        logger.info('[SWEEPER] Started [interval: %ss]', self.interval)
        return scheduler

    async def run_forever(self):
        ''' Run the scheduled sweep until `stop()` is called '''
        self.start()
        await self._stopped.wait()

    def stop(self):
        if self._scheduler is None:
            return

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

        self._scheduler = None
        self._stopped.set()
        logger.info('[SWEEPER] Stopped')
