import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from src.dependencies import (
    get_bearer_token,
    get_current_user,
    get_url_service,
    get_user_service,
)
from src.exceptions import ErrorKind, ServiceError
from src.models import (
    Credentials,
    LoginOut,
    TokenOut,
    URLIn,
    URLRecord,
    User,
    UserOut,
)
from src.services import URLService, UserService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1")

ERROR_RESPONSES = {
    ErrorKind.VALIDATION: (status.HTTP_400_BAD_REQUEST, "Invalid request"),
    ErrorKind.UNAUTHORIZED: (status.HTTP_401_UNAUTHORIZED, "Unauthorized"),
    ErrorKind.NOT_FOUND: (status.HTTP_404_NOT_FOUND, "Content not found"),
    ErrorKind.DUPLICATE_KEY: (status.HTTP_409_CONFLICT, "Already exists"),
    ErrorKind.KEY_SPACE_EXHAUSTED: (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Could not generate a short key",
    ),
    ErrorKind.UNEXPECTED: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"),
}


def error_response(exc: ServiceError) -> JSONResponse:
    status_code, title = ERROR_RESPONSES[exc.kind]
    return JSONResponse(
        status_code=status_code,
        content={"error": title, "detail": exc.message},
    )


def internal_error_response(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "detail": str(exc)},
    )


# Routes
@router.get("/healthz")
def health_check():
    health_status = {"status": "healthy"}
    logger.info("Health Check: OK")
    return JSONResponse(content=health_status, status_code=status.HTTP_200_OK)


@router.post("/urls", response_model=URLRecord, status_code=status.HTTP_201_CREATED)
async def create_short_url(
    urls: Annotated[URLService, Depends(get_url_service)],
    user: Annotated[User, Depends(get_current_user)],
    payload: URLIn,
):
    try:
        return await urls.create_short_url(user.id, str(payload.long_url))
    except ServiceError as exc:
        logger.error(f"Error creating short URL: {exc.message}")
        return error_response(exc)
    except Exception as exc:
        logger.error(f"Unhandled error in create_short_url: {str(exc)}")
        return internal_error_response(exc)


@router.get("/urls/{short_key}")
async def redirect(
    urls: Annotated[URLService, Depends(get_url_service)],
    short_key: str,
):
    try:
        long_url = await urls.get_long_url(short_key)
        return RedirectResponse(url=long_url)
    except ServiceError as exc:
        if exc.kind != ErrorKind.NOT_FOUND:
            logger.error(f"Error redirecting URL: {exc.message}")
        return error_response(exc)
    except Exception as exc:
        logger.error(f"Unhandled error in redirect: {str(exc)}")
        return internal_error_response(exc)


@router.put("/urls/{short_key}", response_model=URLRecord)
async def update_short_url(
    urls: Annotated[URLService, Depends(get_url_service)],
    user: Annotated[User, Depends(get_current_user)],
    short_key: str,
    payload: URLIn,
):
    try:
        return await urls.update_short_url(user.id, short_key, str(payload.long_url))
    except ServiceError as exc:
        logger.error(f"Error updating short URL {short_key}: {exc.message}")
        return error_response(exc)
    except Exception as exc:
        logger.error(f"Unhandled error in update_short_url: {str(exc)}")
        return internal_error_response(exc)


@router.delete("/urls/{short_key}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_short_url(
    urls: Annotated[URLService, Depends(get_url_service)],
    user: Annotated[User, Depends(get_current_user)],
    short_key: str,
):
    try:
        await urls.delete_short_url(user.id, short_key)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except ServiceError as exc:
        logger.error(f"Error deleting short URL {short_key}: {exc.message}")
        return error_response(exc)
    except Exception as exc:
        logger.error(f"Unhandled error in delete_short_url: {str(exc)}")
        return internal_error_response(exc)


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    users: Annotated[UserService, Depends(get_user_service)],
    payload: Credentials,
):
    try:
        return await users.create_user(payload.email, payload.password)
    except ServiceError as exc:
        logger.error(f"Error creating user: {exc.message}")
        return error_response(exc)
    except Exception as exc:
        logger.error(f"Unhandled error in create_user: {str(exc)}")
        return internal_error_response(exc)


@router.put("/users", response_model=UserOut)
async def update_user(
    users: Annotated[UserService, Depends(get_user_service)],
    user: Annotated[User, Depends(get_current_user)],
    payload: Credentials,
):
    try:
        return await users.update_user(user.id, payload.email, payload.password)
    except ServiceError as exc:
        logger.error(f"Error updating user {user.id}: {exc.message}")
        return error_response(exc)
    except Exception as exc:
        logger.error(f"Unhandled error in update_user: {str(exc)}")
        return internal_error_response(exc)


@router.post("/login", response_model=LoginOut)
async def login(
    users: Annotated[UserService, Depends(get_user_service)],
    payload: Credentials,
):
    try:
        user, token, refresh_token = await users.login_user(
            payload.email, payload.password
        )
        return LoginOut(
            id=user.id, email=user.email, token=token, refresh_token=refresh_token
        )
    except ServiceError as exc:
        return error_response(exc)
    except Exception as exc:
        logger.error(f"Unhandled error in login: {str(exc)}")
        return internal_error_response(exc)


@router.post("/refresh", response_model=TokenOut)
async def refresh(
    users: Annotated[UserService, Depends(get_user_service)],
    refresh_token: Annotated[str, Depends(get_bearer_token)],
):
    try:
        token = await users.refresh_access_token(refresh_token)
        return TokenOut(token=token)
    except ServiceError as exc:
        return error_response(exc)
    except Exception as exc:
        logger.error(f"Unhandled error in refresh: {str(exc)}")
        return internal_error_response(exc)
