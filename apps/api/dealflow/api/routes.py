from fastapi import APIRouter, Depends
from fastapi.responses import Response

from dealflow.admin.api import router as admin_router
from dealflow.api.deps import get_caller
from dealflow.api.uploads import router as uploads_router
from dealflow.commissions.api import router as commissions_router
from dealflow.core.config import get_settings
from dealflow.deals.api import router as deals_router
from dealflow.errors import NotFoundError
from dealflow.metrics import generate_metrics_payload, metrics_content_type
from dealflow.pins.api import router as pins_router
from dealflow.platform.security import Caller, ResourceAction, ResourceKind, access_guard
from dealflow.reps.api import router as reps_router
from dealflow.training.api import router as training_router

router = APIRouter()
router.include_router(deals_router)
router.include_router(commissions_router)
router.include_router(pins_router)
router.include_router(reps_router)
router.include_router(admin_router)
router.include_router(uploads_router)
router.include_router(training_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
def me(caller: Caller = Depends(get_caller)) -> dict[str, str | None]:
    return {
        "sub": caller.user_id,
        "email": caller.email,
        "role": caller.role.value if caller.role else None,
        "rep_id": str(caller.rep_id) if caller.rep_id else None,
    }


@router.get("/metrics", tags=["system"])
def metrics(caller: Caller = Depends(get_caller)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise NotFoundError("not found")
    access_guard.require_admin(caller, ResourceKind.IDENTITY, ResourceAction.READ)
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
