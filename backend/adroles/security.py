from datetime import datetime, timedelta
from typing import Annotated, Callable
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from adroles.config import Settings, get_settings
from adroles.db.postgres import get_db
from adroles.errors import Forbidden, Unauthenticated, UserNotFound
from adroles.models.role import Role
from adroles.models.user import User
from adroles.services.capabilities import Capability
from adroles.services.role_resolver import RoleResolution, RoleResolver
from adroles.services.role_store import RoleStore
from adroles.services.route_guard import is_allowed
from adroles.services.test_mode import RequestContext, TestModeOverride

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)

ALGORITHM = "HS256"


def create_access_token(
    data: dict,
    expires_delta: timedelta | None = None,
    settings: Settings | None = None,
) -> str:
    settings = settings or get_settings()
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)
    return encoded_jwt


def decode_user_id(token: str | None, settings: Settings) -> UUID:
    if not token:
        raise Unauthenticated("Authentication token is missing")
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
        user_id = payload.get("sub")
        if user_id is None:
            raise Unauthenticated("Could not validate credentials")
        return UUID(user_id)
    except (JWTError, ValueError):
        raise Unauthenticated("Could not validate credentials")


def get_role_store(db: AsyncSession = Depends(get_db)) -> RoleStore:
    return RoleStore(db)


def get_test_mode_override(
    settings: Settings = Depends(get_settings),
) -> TestModeOverride:
    return TestModeOverride(lambda: settings)


def get_role_resolver(
    store: RoleStore = Depends(get_role_store),
    override: TestModeOverride = Depends(get_test_mode_override),
) -> RoleResolver:
    return RoleResolver(store, override)


async def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    store: RoleStore = Depends(get_role_store),
    settings: Settings = Depends(get_settings),
) -> User:
    user_id = decode_user_id(token, settings)
    try:
        user = await store.get_user(user_id)
    except UserNotFound:
        raise Unauthenticated("Could not validate credentials")
    if not user.is_active:
        raise Unauthenticated("Inactive user")
    return user


def get_request_context(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> RequestContext:
    return RequestContext.from_headers(
        request.headers,
        user_pubkey=current_user.pubkey,
        path=request.url.path,
    )


async def get_current_resolution(
    current_user: User = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    resolver: RoleResolver = Depends(get_role_resolver),
) -> RoleResolution:
    return await resolver.resolve(current_user.id, ctx)


def require_capability(capability: Capability) -> Callable:
    """
    Dependency factory that checks the caller's active role grants a capability.

    Usage:
        @router.post("/users/{user_id}/roles")
        async def grant(
            user_id: UUID,
            resolution: RoleResolution = Depends(require_capability(Capability.CAN_MANAGE_ROLES))
        ):
            ...
    """
    capability = Capability(capability)

    async def capability_checker(
        resolution: RoleResolution = Depends(get_current_resolution),
    ) -> RoleResolution:
        if not is_allowed(resolution.capabilities, capability):
            raise Forbidden(
                f"Permission denied: {capability.value}",
                role=resolution.current_role.value,
                required_capability=capability.value,
            )
        return resolution
    return capability_checker


def require_role(role: Role) -> Callable:
    """Dependency that requires a specific active role (test mode holds every role)."""
    role = Role(role)

    async def role_checker(
        resolution: RoleResolution = Depends(get_current_resolution),
    ) -> RoleResolution:
        if resolution.test_mode:
            return resolution
        if resolution.current_role != role:
            raise Forbidden(
                f"Role '{role.value}' required",
                role=resolution.current_role.value,
                required_role=role.value,
            )
        return resolution
    return role_checker


def require_admin() -> Callable:
    """Dependency that requires admin role."""
    return require_role(Role.ADMIN)
