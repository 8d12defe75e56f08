from fastapi import APIRouter

from campadmin.observability.perf_metrics import perf_metrics

router = APIRouter()


@router.get("/performance")
def get_performance_metrics():
    return perf_metrics.snapshot()
