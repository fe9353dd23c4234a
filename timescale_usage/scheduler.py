"""timescale-usage 采集调度器.

使用 APScheduler 按固定间隔串行执行采集周期; 未配置间隔时只执行一次.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import timedelta
from enum import Enum

from apscheduler.events import EVENT_JOB_ERROR, JobExecutionEvent
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers import SchedulerNotRunningError
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from timescale_usage.utils.structlog_config import get_system_logger
from timescale_usage.utils.time_utils import time_utils

logger = get_system_logger()

CycleFunc = Callable[[], object]
COLLECTION_JOB_ID = "collect_usage"


class SchedulerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class UsageScheduler:
    """采集周期调度器.

    - 周期之间不会重叠: 单线程执行器 + ``max_instances=1``.
    - ``stop()`` 只在周期之间生效, 会等待正在执行的周期结束.
    - 任一周期抛出的异常会停止调度, 并由 ``run()`` 原样重新抛出.
    """

    def __init__(self, cycle_func: CycleFunc, interval: timedelta | None = None) -> None:
        self.cycle_func = cycle_func
        self.interval = interval
        self.state = SchedulerState.IDLE
        self._lock = threading.Lock()
        self._scheduler: BlockingScheduler | None = None
        self._stop_requested = False
        self._error: BaseException | None = None

    def run(self) -> None:
        """执行调度, 阻塞直到单次运行完成、被停止或周期失败.

        Raises:
            Exception: 采集周期抛出的原始异常.

        """
        if self.interval is None:
            self._run_once()
            return

        with self._lock:
            if self._stop_requested:
                self.state = SchedulerState.STOPPED
                return
            self._scheduler = self._setup_scheduler(self.interval)
            self.state = SchedulerState.RUNNING

        logger.info("usage_scheduler_started", interval_seconds=self.interval.total_seconds())
        try:
            self._scheduler.start()
        finally:
            self.state = SchedulerState.STOPPED
            logger.info("usage_scheduler_stopped", failed=self._error is not None)

        if self._error is not None:
            raise self._error

    def stop(self, *, wait: bool = True) -> None:
        """请求停止; 不会中断正在执行的周期, 之后也不会再启动新周期."""
        with self._lock:
            self._stop_requested = True
            scheduler = self._scheduler
        if scheduler is None or not scheduler.running:
            return
        try:
            scheduler.shutdown(wait=wait)
        except SchedulerNotRunningError:
            logger.debug("usage_scheduler_already_stopped")

    def _run_once(self) -> None:
        self.state = SchedulerState.RUNNING
        logger.info("usage_scheduler_single_run")
        try:
            self.cycle_func()
        finally:
            self.state = SchedulerState.STOPPED

    def _setup_scheduler(self, interval: timedelta) -> BlockingScheduler:
        """配置 APScheduler 并注册失败事件.

        第一次运行立即触发, 之后按 interval 固定周期触发.
        """
        scheduler = BlockingScheduler(
            executors={"default": ThreadPoolExecutor(max_workers=1)},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": None,
            },
            timezone="UTC",
        )
        scheduler.add_listener(self._job_error, EVENT_JOB_ERROR)
        scheduler.add_job(
            self._guarded_cycle,
            IntervalTrigger(seconds=interval.total_seconds(), timezone="UTC"),
            id=COLLECTION_JOB_ID,
            name="采集 TimescaleDB 对象容量",
            next_run_time=time_utils.now(),
        )
        return scheduler

    def _guarded_cycle(self) -> object:
        """执行一次周期; 若启动前已请求停止则直接结束调度."""
        if self._stop_requested:
            self.stop(wait=False)
            return None
        return self.cycle_func()

    def _job_error(self, event: JobExecutionEvent) -> None:
        """处理周期失败事件: 记录异常并停止调度.

        在执行器线程中回调, 因此不能等待执行器退出.
        """
        self._error = event.exception
        logger.error(
            "usage_cycle_failed",
            job_id=event.job_id,
            error=str(event.exception) if event.exception else "未知错误",
        )
        self.stop(wait=False)
