"""
Celery Application Configuration
Analysis runs and blog scoring happen on their own queues; beat checks
hourly for brands whose scheduled analysis is due.
"""

from celery import Celery
from kombu import Queue, Exchange

from sovtrack.config import get_settings

settings = get_settings()

ANALYSIS_QUEUE = "analysis"
SCORING_QUEUE = "scoring"

celery_app = Celery(
    "sovtrack",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "sovtrack.workers.tasks.analysis_tasks",
        "sovtrack.workers.tasks.scoring_tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=86400,

    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # One run is bounded by the prompt batch deadline plus persistence
    task_soft_time_limit=int(settings.PROMPT_BATCH_DEADLINE_SECONDS) + 60,
    task_time_limit=int(settings.PROMPT_BATCH_DEADLINE_SECONDS) + 120,

    worker_prefetch_multiplier=1,
    worker_concurrency=settings.CELERY_WORKER_CONCURRENCY,

    task_queues=(
        Queue("default", Exchange("default"), routing_key="default"),
        Queue(ANALYSIS_QUEUE, Exchange(ANALYSIS_QUEUE), routing_key=ANALYSIS_QUEUE),
        Queue(SCORING_QUEUE, Exchange(SCORING_QUEUE), routing_key=SCORING_QUEUE),
    ),
    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",

    task_routes={
        "sovtrack.workers.tasks.analysis_tasks.run_brand_analysis": {"queue": ANALYSIS_QUEUE},
        "sovtrack.workers.tasks.scoring_tasks.*": {"queue": SCORING_QUEUE},
    },

    beat_schedule={
        "process-scheduled-analyses": {
            "task": "sovtrack.workers.tasks.analysis_tasks.process_scheduled_analyses",
            "schedule": settings.SCHEDULE_CHECK_INTERVAL_SECONDS,
        },
    },
)
