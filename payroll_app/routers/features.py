"""
Features Router

Lets clients discover which capabilities are switched on so they can
hide the matching views.
"""
from fastapi import APIRouter, Depends

from payroll_app.core.features import FeatureFlags
from payroll_app.routers.auth_deps import get_current_actor, get_feature_flags
from payroll_app.schemas.common import FeatureListResponse

router = APIRouter(
    prefix="/features",
    tags=["features"],
    dependencies=[Depends(get_current_actor)]
)


@router.get("", response_model=FeatureListResponse)
def list_features(flags: FeatureFlags = Depends(get_feature_flags)):
    return {"features": flags.describe()}
