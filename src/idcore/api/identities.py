"""身份查询接口。"""

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from idcore.core.errors import IdentityNotFound
from idcore.db.session import get_db
from idcore.schemas.auth import IdentityData
from idcore.schemas.common import ErrorResponse, SuccessResponse
from idcore.services import find_identity
from idcore.utils.response import success

router = APIRouter(prefix="/identities", tags=["identities"])


@router.get(
    "/{identifier}",
    summary="按邮箱或用户名查询身份",
    description="邮箱匹配优先，其次匹配用户名；返回结果不含任何凭据材料。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[IdentityData],
    responses={404: {"model": ErrorResponse}},
)
def get_identity(
    request: Request,
    identifier: str = Path(min_length=1, max_length=256, description="邮箱或用户名。"),
    db: Session = Depends(get_db),
):
    identity = find_identity(db, identifier)
    if identity is None:
        raise IdentityNotFound(field="identifier")
    return success(request, identity.model_dump(mode="json"))
