from fastapi import APIRouter, Depends, status

from ...api.deps import get_admin_principal, get_health_tip_service
from ...core.security import Principal
from ...schemas.health_tip import HealthTipCreate, HealthTipListResponse, HealthTipResponse
from ...services.health_tip_service import HealthTipService

router = APIRouter(prefix="/healthtips", tags=["Health Tips"])

@router.get("/random", response_model=HealthTipResponse)
async def random_tip(
    service: HealthTipService = Depends(get_health_tip_service)
):
    """A random active health tip."""
    return await service.random_tip()

@router.get("/category/{category}", response_model=HealthTipListResponse)
async def tips_by_category(
    category: str,
    service: HealthTipService = Depends(get_health_tip_service)
):
    """Active tips of one category."""
    tips = await service.by_category(category)
    return {"count": len(tips), "tips": tips}

@router.get("", response_model=HealthTipListResponse)
async def list_tips(
    principal: Principal = Depends(get_admin_principal),
    service: HealthTipService = Depends(get_health_tip_service)
):
    """All health tips (admin only)."""
    tips = await service.list_tips(principal)
    return {"count": len(tips), "tips": tips}

@router.post("", response_model=HealthTipResponse, status_code=status.HTTP_201_CREATED)
async def create_tip(
    tip_data: HealthTipCreate,
    principal: Principal = Depends(get_admin_principal),
    service: HealthTipService = Depends(get_health_tip_service)
):
    """Add a health tip (admin only)."""
    return await service.create_tip(
        principal, tip_data.content, tip_data.category, tip_data.tags, tip_data.source
    )
