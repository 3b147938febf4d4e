from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from clixen.database.session import get_db_session
from clixen.platform.db_readiness import check_database

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/api/health/readiness")
async def readiness(request: Request, db=Depends(get_db_session)):
    """Readiness probe: database reachable, tables present, required settings set."""
    result = check_database(db)
    missing_config = request.app.state.services.settings.missing_required()
    ready = result.ready and not missing_config
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if ready else "not_ready",
            "checks": {
                "database": "ok" if result.database_ok else "error",
                "tables": {
                    "required": result.checked_tables,
                    "missing": result.missing_tables,
                },
                "missing_config": missing_config,
            },
        },
    )
