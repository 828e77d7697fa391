"""Liveness endpoint."""

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
def health_check() -> dict[str, str]:
    """Report that the process is up; the pipeline keeps no backing services."""

    return {"status": "ok"}
