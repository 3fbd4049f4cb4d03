from fastapi import APIRouter, status

from fanlink.schemas.health import HealthCheck

router = APIRouter()


@router.get(
    "/health",
    tags=["health"],
    response_model=HealthCheck,
    status_code=status.HTTP_200_OK,
)
def get_health() -> HealthCheck:
    return HealthCheck(status="ok")
