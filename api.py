"""HTTP surface for sequence progression.

Run locally:
    uvicorn api:app --reload
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError

from db.connection import StoreUnavailableError, ensure_store, get_db
from progression.backfill import run_backfill
from progression.errors import SequenceProgressionError, TaskNotFoundError
from progression.jobs import record_job_run
from progression.materializer import activate_sequence, advance_after_completion

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Sequence Progression API",
    description="Creates the next email or task as contacts move through outreach sequences.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class _CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CompleteTaskRequest(_CamelRequest):
    task_id: Optional[str] = None


class BackfillRequest(_CamelRequest):
    dry_run: bool = False


class ActivationRequest(_CamelRequest):
    sequence_id: str
    contact_ids: list[str] = Field(default_factory=list)
    owner_id: Optional[str] = None


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@app.post("/api/complete-sequence-task")
async def complete_sequence_task(req: CompleteTaskRequest):
    """Create the next step after a sequence task is completed."""
    if not req.task_id:
        return JSONResponse(status_code=400, content={"error": "taskId is required"})
    try:
        await ensure_store()
        async with get_db() as session:
            result = await advance_after_completion(session, req.task_id)
    except TaskNotFoundError:
        return JSONResponse(status_code=404, content={"error": "Task not found"})
    except (StoreUnavailableError, SequenceProgressionError, SQLAlchemyError) as e:
        logger.error("Complete sequence task %s failed: %s", req.task_id, e)
        return _failure(500, str(e))
    return result.to_json_dict()


@app.post("/api/backfill-sequence-tasks")
async def backfill_sequence_tasks(req: Optional[BackfillRequest] = None):
    """Create missing next tasks for every enrollment."""
    dry_run = req.dry_run if req else False
    started_at = datetime.now(timezone.utc)
    try:
        await ensure_store()
        async with get_db() as session:
            report = await run_backfill(session, dry_run=dry_run)
    except StoreUnavailableError as e:
        return _failure(500, str(e))
    except SQLAlchemyError as e:
        logger.error("Backfill failed: %s", e, exc_info=True)
        await record_job_run(
            "backfill-sequence-tasks",
            started_at=started_at,
            dry_run=dry_run,
            success=False,
            error_message=str(e),
        )
        return _failure(500, str(e))
    await record_job_run(
        "backfill-sequence-tasks",
        started_at=started_at,
        dry_run=dry_run,
        summary=report.to_json_dict(),
    )
    return report.to_json_dict()


@app.post("/api/process-sequence-activation")
async def process_sequence_activation(req: ActivationRequest):
    """Enroll contacts in a sequence and create their first steps."""
    started_at = datetime.now(timezone.utc)
    try:
        await ensure_store()
        async with get_db() as session:
            report = await activate_sequence(
                session, req.sequence_id, req.contact_ids, req.owner_id
            )
    except (StoreUnavailableError, SequenceProgressionError) as e:
        logger.error("Activation of sequence %s failed: %s", req.sequence_id, e)
        return _failure(500, str(e))
    except SQLAlchemyError as e:
        logger.error("Activation of sequence %s failed: %s", req.sequence_id, e, exc_info=True)
        await record_job_run(
            "process-sequence-activation",
            started_at=started_at,
            success=False,
            error_message=str(e),
        )
        return _failure(500, str(e))
    await record_job_run(
        "process-sequence-activation",
        started_at=started_at,
        summary=report.to_json_dict(),
    )
    return {"success": True, **report.to_json_dict()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api:app", host="0.0.0.0", port=8000, reload=True)
