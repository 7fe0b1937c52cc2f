"""Pipeline orchestration - per-feed workers, the scheduler and full runs."""

from .report import FeedStatus, FeedResult, RunReport
from .worker import FeedWorker, WorkerState, sort_items
from .scheduler import Scheduler
from .run import FeedPipeline, run_pipeline

__all__ = [
    "FeedStatus", "FeedResult", "RunReport",
    "FeedWorker", "WorkerState", "sort_items",
    "Scheduler", "FeedPipeline", "run_pipeline"
]
