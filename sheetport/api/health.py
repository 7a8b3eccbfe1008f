"""Health check endpoint — verifies backend + record store connectivity."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check backend status, the record store and the mapping oracle budget."""
    nebula_ok = request.app.state.store.check_connection()
    oracle = request.app.state.oracle

    return {
        "status": "ok" if nebula_ok else "degraded",
        "services": {
            "nebula": "ok" if nebula_ok else "error",
            "oracle": "ok" if oracle.available else "unavailable",
        },
        "oracle_budget": oracle.budget.summary(),
    }
