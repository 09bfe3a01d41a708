"""System routes: memory pressure and environment diagnostics."""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from ...core.config import Settings
from ...core.environment import check_environment
from ...core.memory import get_pressure, label
from ..deps import app_settings

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/memory")
async def memory():
    """Current host memory pressure with its severity band."""
    pressure = get_pressure()
    mem = label(pressure)
    return {"pressure": pressure, "text": mem.text, "severity": mem.severity}


@router.get("/environment")
async def environment(settings: Settings = Depends(app_settings)):
    """Probe every external tool the pipeline needs."""
    checks = await check_environment(settings)
    return [asdict(c) for c in checks]
