"""Participant progress report (JSON and CSV)."""

import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from learnsphere.db.database import get_db
from learnsphere.routes.auth import require_role
from learnsphere.services import reporting
from learnsphere.services.roles import Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])

_require_instructor = require_role(Role.INSTRUCTOR)


@router.get("/participants")
async def participants(request: Request, search: str | None = None, db=Depends(get_db)):
    user = await _require_instructor(request, db)
    rows = await reporting.participant_rows(db, user, search)
    return {"rows": rows, "summary": reporting.summarize(rows)}


@router.get("/participants.csv")
async def participants_csv(
    request: Request,
    search: str | None = None,
    columns: str | None = None,
    db=Depends(get_db),
):
    user = await _require_instructor(request, db)
    selected = reporting.resolve_columns(columns)
    rows = await reporting.participant_rows(db, user, search)
    logger.info("User %s exported %d report rows", user.user_id, len(rows))

    return StreamingResponse(
        iter([reporting.rows_to_csv(rows, selected)]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=participants_report.csv"},
    )
