from __future__ import annotations

from ispsync.workers.job_runner import JobRunner

TASK_NAME_PREFIX = "ispsync.workers.tasks.reconciliation.run_"


def task_name_for(job_type: str) -> str:
    return f"{TASK_NAME_PREFIX}{job_type}"


def configure_reconciliation_schedule(celery_app, runner: JobRunner) -> None:
    celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
    celery_app.conf.beat_schedule.update(
        {
            f"{job_type.replace('_', '-')}-{spec.trigger.label}": {
                "task": task_name_for(job_type),
                "schedule": spec.trigger.to_schedule(),
                "options": {"queue": "q_reconcile"},
            }
            for job_type, spec in runner.jobs.items()
        }
    )
