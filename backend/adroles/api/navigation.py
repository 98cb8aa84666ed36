from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from adroles.schemas.roles import NavigationDecision
from adroles.security import get_current_resolution
from adroles.services.role_resolver import RoleResolution
from adroles.services.route_guard import check_navigation, dashboard_path

router = APIRouter()


@router.get("/check", response_model=NavigationDecision)
async def check_route(
    path: str = Query(..., min_length=1),
    resolution: RoleResolution = Depends(get_current_resolution),
):
    """Whether the caller may open *path*, and where to go if not."""
    return check_navigation(resolution.current_role, path, test_mode=resolution.test_mode)


@router.get("/go")
async def go(
    path: str = Query(..., min_length=1),
    resolution: RoleResolution = Depends(get_current_resolution),
):
    """Redirect to *path* if allowed, otherwise to the caller's dashboard."""
    decision = check_navigation(resolution.current_role, path, test_mode=resolution.test_mode)
    return RedirectResponse(decision.path if decision.allowed else decision.redirect_to, status_code=307)


@router.get("/dashboard")
async def get_dashboard(resolution: RoleResolution = Depends(get_current_resolution)):
    return {"role": resolution.current_role.value, "path": dashboard_path(resolution.current_role)}
