from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from typing import Optional

from ..core.exceptions import Forbidden, Unauthenticated
from ..core.security import security, Principal
from ..core.storage import RecordStore, get_store
from ..services.appointment_service import AppointmentService
from ..services.auth_service import AuthService
from ..services.health_tip_service import HealthTipService
from ..services.notification_service import NotificationDispatcher
from ..services.stats_service import StatsService

def get_dispatcher(request: Request) -> Optional[NotificationDispatcher]:
    """Notification dispatcher built at application startup."""
    return getattr(request.app.state, "dispatcher", None)

# Service dependencies
def get_auth_service(store: RecordStore = Depends(get_store)) -> AuthService:
    return AuthService(store)

def get_appointment_service(
    store: RecordStore = Depends(get_store),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher)
) -> AppointmentService:
    return AppointmentService(store, dispatcher)

def get_stats_service(store: RecordStore = Depends(get_store)) -> StatsService:
    return StatsService(store)

def get_health_tip_service(store: RecordStore = Depends(get_store)) -> HealthTipService:
    return HealthTipService(store)

# Principal resolution; never fails, anonymous callers get Principal.anonymous()
async def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Principal:
    """Resolve the bearer token, degrading to the anonymous principal."""
    token = credentials.credentials if credentials else None
    return await auth_service.authenticate(token)

async def get_current_principal(
    principal: Principal = Depends(get_principal)
) -> Principal:
    """Require an authenticated principal."""
    if not principal.is_authenticated:
        raise Unauthenticated()
    return principal

async def get_admin_principal(
    principal: Principal = Depends(get_current_principal)
) -> Principal:
    """Require admin role."""
    if not principal.is_admin:
        raise Forbidden("Admin access required")
    return principal
