"""
API依赖项 - 认证、授权与服务装配（composition root）
"""
from functools import lru_cache
from typing import Callable, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from application.dto import CurrentUserDTO
from application.ports.payment_gateway import PaymentGateway
from application.services.enrollment_service import EnrollmentApplicationService
from application.services.refund_service import RefundProcessor
from application.services.settlement_service import SettlementCallbackHandler
from core.config import settings
from core.exceptions import TokenExpiredException, TokenInvalidException, UnauthorizedException
from core.logging_config import get_logger
from domain.common.exceptions import ForbiddenException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.user.entity import UserRole
from infrastructure.external.payments import get_payment_gateway
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


logger = get_logger(__name__)

# HTTP Bearer for direct API calls
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)


async def get_token(
    bearer_token: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer)
) -> str:
    """从 Authorization: Bearer 中提取token"""
    if bearer_token and bearer_token.credentials:
        return bearer_token.credentials
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication credentials were not provided",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> int:
    """校验签名与过期时间，返回 sub 中的用户ID"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredException()
    except jwt.InvalidTokenError:
        raise TokenInvalidException()
    sub = payload.get("sub")
    try:
        return int(sub)
    except (TypeError, ValueError):
        raise TokenInvalidException("Token subject is missing or malformed")


def get_uow_factory() -> Callable[..., AbstractUnitOfWork]:
    return SQLAlchemyUnitOfWork


@lru_cache
def _default_gateway() -> PaymentGateway:
    gateway = get_payment_gateway()
    logger.info("payment_gateway_selected", provider=gateway.provider)
    return gateway


def get_gateway() -> PaymentGateway:
    return _default_gateway()


async def get_current_user(
    token: str = Depends(get_token),
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
) -> CurrentUserDTO:
    """获取当前登录用户"""
    user_id = decode_access_token(token)
    async with uow_factory(readonly=True) as uow:
        user = await uow.user_repository.get_by_id(user_id)
    if user is None:
        raise UnauthorizedException("User for this token no longer exists")
    return CurrentUserDTO.from_entity(user)


async def get_current_active_user(
    current_user: CurrentUserDTO = Depends(get_current_user)
) -> CurrentUserDTO:
    """获取当前激活的用户"""
    if not current_user.is_active:
        raise ForbiddenException("User account is deactivated", error_type="UserInactive")
    return current_user


def require_role(*roles: UserRole):
    """Dependency factory: the active user must hold one of ``roles``."""

    async def _checker(current_user: CurrentUserDTO = Depends(get_current_active_user)) -> CurrentUserDTO:
        if current_user.role not in roles:
            raise ForbiddenException(
                f"Requires role: {', '.join(r.value for r in roles)}",
                error_type="RoleRequired",
                details={"role": current_user.role.value},
            )
        return current_user

    return _checker


require_student = require_role(UserRole.STUDENT)
require_admin = require_role(UserRole.ADMIN)


def get_enrollment_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    gateway: PaymentGateway = Depends(get_gateway),
) -> EnrollmentApplicationService:
    return EnrollmentApplicationService(uow_factory=uow_factory, gateway=gateway)


def get_settlement_handler(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    gateway: PaymentGateway = Depends(get_gateway),
) -> SettlementCallbackHandler:
    return SettlementCallbackHandler(uow_factory=uow_factory, gateway=gateway, frontend_url=settings.FRONTEND_URL)


def get_refund_processor(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
) -> RefundProcessor:
    return RefundProcessor(uow_factory=uow_factory)


async def close_gateway() -> None:
    """Release the shared gateway's HTTP client, if one was ever built."""
    if _default_gateway.cache_info().currsize == 0:
        return
    close = getattr(_default_gateway(), "aclose", None)
    if callable(close):
        await close()
