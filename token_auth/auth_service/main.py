from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import Optional
import logging

from fastapi import FastAPI, Depends, HTTPException, status, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .config import get_settings
from .db import get_db, init_db
from .errors import AuthError, MailDeliveryError, Result
from .mailer import MailSink, build_mail_sink
from .models import User
from .schemas import (
    UserCreate,
    UserLogin,
    UserResponse,
    TokenPairResponse,
    RefreshRequest,
    ForgotPasswordRequest,
    PasswordChange,
    PasswordResetConfirm,
    MessageResponse,
)
from .service import AuthService
from .tokens import TokenPair, TokenRole, TokenService
from .users import DuplicateEmailError, SqlUserStore
from .utils.event_logger import log_auth_event

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    AuthError.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthError.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    AuthError.MISSING_TOKEN: status.HTTP_400_BAD_REQUEST,
    AuthError.INVALID_SIGNATURE: status.HTTP_401_UNAUTHORIZED,
    AuthError.TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    AuthError.INVALID_TOKEN: status.HTTP_400_BAD_REQUEST,
    AuthError.PASSWORD_MISMATCH: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def raise_for_error(error: AuthError):
    raise HTTPException(status_code=ERROR_STATUS[error], detail=error.message)


def unwrap(result: Result):
    if not result.ok:
        raise_for_error(result.error)
    return result.value


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Initialize database on startup"""
    init_db()
    logger.info("Auth service started")
    yield


app = FastAPI(title="Token Auth Service", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MailDeliveryError)
def mail_delivery_failed(_request: Request, exc: MailDeliveryError):
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": "Could not send email, try again later"},
    )


# ---------------- Dependencies ----------------

@lru_cache
def get_token_service() -> TokenService:
    return TokenService(get_settings())


@lru_cache
def get_mail_sink() -> MailSink:
    return build_mail_sink(get_settings())


def get_auth_service(
    db: Session = Depends(get_db),
    mailer: MailSink = Depends(get_mail_sink),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(SqlUserStore(db), mailer, tokens, get_settings())


def get_current_user(
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> User:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    token = authorization.split(" ", 1)[1].strip()

    verified = tokens.verify(token, TokenRole.ACCESS)
    if not verified.ok:
        # any rejected bearer token is an authentication failure here
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=verified.error.message)

    user = SqlUserStore(db).find_by_id(verified.value.id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def token_response(pair: TokenPair) -> TokenPairResponse:
    return TokenPairResponse(access_token=pair.access_token, refresh_token=pair.refresh_token)


# ---------------- Routes ----------------

@app.get("/health")
def health_check():
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


@app.post("/auth/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    try:
        user = SqlUserStore(db).create_user(payload.email, payload.password)
    except DuplicateEmailError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already exists") from e
    return user


@app.post("/auth/login", response_model=TokenPairResponse)
def login(
    credentials: UserLogin,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    result = auth.sign_in(credentials.email, credentials.password)
    if not result.ok:
        log_auth_event("login_failure", request, db, email=credentials.email)
        raise_for_error(result.error)

    identity = auth.tokens.decode(result.value.access_token).value
    log_auth_event("login_success", request, db, user_id=int(identity.id), email=identity.email)
    return token_response(result.value)


@app.post("/auth/refresh", response_model=TokenPairResponse)
def refresh(
    payload: RefreshRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    pair = unwrap(auth.refresh(payload.refresh_token))
    identity = auth.tokens.decode(pair.access_token).value
    log_auth_event("token_refresh", request, db, user_id=int(identity.id), email=identity.email)
    return token_response(pair)


@app.post("/auth/forgot-password", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    unwrap(auth.forgot_password(payload.email))
    log_auth_event("password_reset_request", request, db, email=payload.email)
    return MessageResponse(message="A password recovery email has been sent.")


@app.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(
    payload: PasswordResetConfirm,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    unwrap(auth.reset_password(payload.token, payload.password, payload.confirm_password))
    log_auth_event("password_reset", request, db)
    return MessageResponse(message="Password updated successfully")


@app.patch("/auth/change-password", response_model=MessageResponse)
def change_password(
    payload: PasswordChange,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    user_id, email = user.id, user.email
    unwrap(auth.change_password(str(user_id), payload.password, payload.confirm_password))
    log_auth_event("password_change", request, db, user_id=user_id, email=email)
    return MessageResponse(message="Password updated successfully")


@app.get("/auth/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user
