"""注册、登录与口令重置接口。"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from idcore.core.config import get_settings
from idcore.db.session import get_db
from idcore.schemas.auth import (
    AuthLoginData,
    AuthLoginRequest,
    AuthRegisterRequest,
    IdentityData,
    PasswordResetConfirmRequest,
    PasswordResetDoneData,
    PasswordResetRequest,
    PasswordResetRequestedData,
)
from idcore.schemas.common import ErrorResponse, SuccessResponse
from idcore.services import authenticate, confirm_password_reset, register as register_identity, request_password_reset
from idcore.utils.response import success

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    summary="注册本地账号",
    description="创建身份与公开资料（同一事务），用户名或邮箱已占用时返回 409。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[IdentityData],
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
def register(payload: AuthRegisterRequest, request: Request, db: Session = Depends(get_db)):
    """注册本地账号。"""
    identity = register_identity(db, email=payload.email, username=payload.username, password=payload.password)
    return success(request, identity.model_dump(mode="json"))


@router.post(
    "/login",
    summary="邮箱或用户名登录",
    description="校验口令并返回身份视图；访问令牌由上游网关签发。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLoginData],
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
def login(payload: AuthLoginRequest, request: Request, db: Session = Depends(get_db)):
    """邮箱或用户名 + 口令登录。"""
    result = authenticate(db, identifier=payload.identifier, password=payload.password)
    data = AuthLoginData(identity=result.identity, two_factor_required=result.two_factor_required)
    return success(request, data.model_dump(mode="json"))


@router.post(
    "/password/forgot",
    summary="申请口令重置",
    description="邮箱存在时签发一次性重置令牌；无论邮箱是否存在都返回受理。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[PasswordResetRequestedData],
    responses={503: {"model": ErrorResponse}},
)
def forgot_password(payload: PasswordResetRequest, request: Request, db: Session = Depends(get_db)):
    """申请口令重置令牌。"""
    issued = request_password_reset(db, email=payload.email)
    data = PasswordResetRequestedData(accepted=True)
    # 没有投递渠道时，调试环境直接返回令牌便于联调。
    if issued is not None and get_settings().app_debug:
        data.reset_token = issued.token
        data.expires_at = issued.expires_at
    return success(request, data.model_dump(mode="json"))


@router.post(
    "/password/reset",
    summary="确认口令重置",
    description="使用一次性令牌设置新口令，令牌无效、已使用或过期时返回 400。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[PasswordResetDoneData],
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def reset_password(payload: PasswordResetConfirmRequest, request: Request, db: Session = Depends(get_db)):
    """使用重置令牌设置新口令。"""
    confirm_password_reset(db, token=payload.token, new_password=payload.new_password)
    return success(request, PasswordResetDoneData(reset=True).model_dump(mode="json"))
