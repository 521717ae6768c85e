from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from pixelchain.application.dtos.common_dto import ErrorResponse, ValidateTokenResponse
from pixelchain.infrastructure.api.dependencies import get_interceptors
from pixelchain.infrastructure.api.interceptors import InterceptorChain, RequestContext

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized - Invalid or missing authentication token"},
    },
)


@router.post(
    "/validate",
    response_model=ValidateTokenResponse,
    status_code=status.HTTP_200_OK,
    summary="Validate Authentication Token",
    description="""
    Validate the bearer token in the Authorization header and return the
    identity it resolves to.

    **Authentication required**: Yes (Bearer token)
    """,
    response_description="User information confirming valid authentication",
)
async def validate_token(
    request: Request,
    interceptors: InterceptorChain = Depends(get_interceptors),
) -> Response:
    """Validate the bearer token."""

    async def handle(ctx: RequestContext) -> Response:
        body = ValidateTokenResponse(user_id=ctx.user.id, email=ctx.user.email)
        return JSONResponse(content=body.model_dump())

    return await interceptors.run(RequestContext(request=request), handle)
