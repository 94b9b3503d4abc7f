"""Process variables in the style of a Go expvar ``/debug/vars`` page."""

import gc
import os
import resource
import sys
import time
from typing import Any, Dict, List

from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter(prefix="/debug", tags=["Debug"])

_STARTED_AT = time.time()


class MemStats(BaseModel):
    max_rss_kb: int
    user_cpu_seconds: float
    system_cpu_seconds: float
    gc_counts: List[int]
    gc_collections: List[int]
    gc_objects: int


class DebugVars(BaseModel):
    cmdline: List[str]
    pid: int
    python_version: str
    uptime_seconds: float
    memstats: MemStats


def _memstats() -> Dict[str, Any]:
    usage = resource.getrusage(resource.RUSAGE_SELF)
    return {
        "max_rss_kb": usage.ru_maxrss,
        "user_cpu_seconds": usage.ru_utime,
        "system_cpu_seconds": usage.ru_stime,
        "gc_counts": list(gc.get_count()),
        "gc_collections": [gen["collections"] for gen in gc.get_stats()],
        "gc_objects": len(gc.get_objects()),
    }


@router.get("/vars", response_model=DebugVars)
async def debug_vars():
    """Command line, uptime and memory statistics of this process."""
    return DebugVars(
        cmdline=list(sys.argv),
        pid=os.getpid(),
        python_version=sys.version.split()[0],
        uptime_seconds=round(time.time() - _STARTED_AT, 3),
        memstats=MemStats(**_memstats()),
    )
