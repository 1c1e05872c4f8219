from fastapi import APIRouter, Request, status

from core.exceptions import UnauthorizedError
from middleware.rate_limiter import limiter
from repositories.user_directory import SqlAlchemyUserDirectory
from schemas.auth_schemas import PrincipalSummary
from schemas.common import ApiResponse
from utils.deps import db_dependency, identity_dependency


router = APIRouter(
    prefix="/users",
    tags=["users"]
)


@router.get("/me", status_code=status.HTTP_200_OK, response_model=ApiResponse[PrincipalSummary])
@limiter.limit("30/minute")
def get_user_info(request: Request, identity: identity_dependency, db: db_dependency):
    """
    Get current user info (protected endpoint).
    """
    model = SqlAlchemyUserDirectory(db).find_by_id(identity.id)

    if not model:
        raise UnauthorizedError("Authentication required, please log in")

    return ApiResponse[PrincipalSummary].success(PrincipalSummary.model_validate(model))
