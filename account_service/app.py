# account_service/app.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .codes import VerificationCodePolicy
from .config import Settings, load_settings
from .database import Database
from .errors import AccountError, Unauthorized
from .log import configure_logging, get_logger
from .models import Account
from .notifications import ChannelDispatcher, NotificationDispatcher
from .schemas import (
    AccountListResponse,
    AccountOut,
    AccountResponse,
    ChangePasswordData,
    LoginData,
    MessageResponse,
    PasswordReset,
    RegisterData,
    ResetCodeRequest,
    ResetCodeResponse,
    TokenResponse,
)
from .security import PasswordHasher, TokenIssuer
from .service import AccountService
from .store import CredentialStore

logger = get_logger("app")


def build_service(
    settings: Settings,
    database: Database,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> AccountService:
    store = CredentialStore(database)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenIssuer(settings.auth_secret_key, ttl_seconds=settings.access_token_expire_seconds)
    codes = VerificationCodePolicy(
        store,
        dispatcher or ChannelDispatcher.from_settings(settings),
        hasher,
        code_ttl_seconds=settings.reset_code_expire_seconds,
        max_attempts=settings.reset_code_attempts,
    )
    return AccountService(store, hasher, tokens, codes)


# --- Dependencies ---
def get_service(request: Request) -> AccountService:
    return request.app.state.service


def get_current_account(
    authorization: Optional[str] = Header(None),
    service: AccountService = Depends(get_service),
) -> Account:
    if not authorization:
        raise Unauthorized("Authorization header missing")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Authorization header must be 'Bearer <token>'")
    return service.authenticate(token.strip())


def admin_required(
    account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_service),
) -> Account:
    return service.require_role(account, "admin")


# --- Error handlers ---
def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "code": code, "message": message},
    )


async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    content = {"success": False, "code": exc.code, "message": exc.message}
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field
    return JSONResponse(status_code=exc.status_code, content=content)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, "validation_error", "Malformed request body")


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "server_error", "Server Error")


# ------------------------------------------------------------------
# --- ROUTES DEFINITIONS ---
# ------------------------------------------------------------------
auth_router = APIRouter(prefix="/auth", tags=["Authentication"])
admin_router = APIRouter(prefix="/admin", tags=["Admin Management"])
tools_router = APIRouter(prefix="/tools", tags=["Tools"])


@auth_router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterData, service: AccountService = Depends(get_service)):
    account, token = service.register(data.username, data.password, data.email, data.phone)
    return TokenResponse(access_token=token, account=AccountOut.model_validate(account))


@auth_router.post("/login", response_model=TokenResponse)
def login(data: LoginData, service: AccountService = Depends(get_service)):
    account, token = service.login(data.identifier, data.password)
    return TokenResponse(access_token=token, account=AccountOut.model_validate(account))


@auth_router.post("/logout", response_model=MessageResponse)
def logout():
    # tokens are stateless; the client just drops its copy
    return MessageResponse(msg="Logged out")


@auth_router.get("/me", response_model=AccountResponse)
def me(account: Account = Depends(get_current_account)):
    return AccountResponse(account=AccountOut.model_validate(account))


@auth_router.put("/password", response_model=MessageResponse)
def change_password(
    data: ChangePasswordData,
    account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_service),
):
    service.change_password(account.id, data.current_password, data.new_password)
    return MessageResponse(msg="Password updated successfully.")


@auth_router.post("/reset-code", response_model=ResetCodeResponse)
def request_reset_code(data: ResetCodeRequest, service: AccountService = Depends(get_service)):
    issued = service.issue_reset_code(data.identifier)
    return ResetCodeResponse(
        channel=issued.channel.value,
        destination=issued.destination,
        expires_at=issued.expires_at,
    )


@auth_router.post("/reset-password", response_model=MessageResponse)
def reset_password(data: PasswordReset, service: AccountService = Depends(get_service)):
    service.consume_reset_code(data.identifier, data.code, data.new_password)
    return MessageResponse(msg="Password reset successfully.")


@admin_router.get("/accounts", response_model=AccountListResponse)
def list_accounts(
    _: Account = Depends(admin_required),
    service: AccountService = Depends(get_service),
):
    accounts = service.list_accounts()
    return AccountListResponse(accounts=[AccountOut.model_validate(a) for a in accounts])


@tools_router.get("/ua", response_class=PlainTextResponse)
def user_agent(request: Request):
    return request.headers.get("user-agent", "")


@tools_router.get("/ip", response_class=PlainTextResponse)
def client_ip(request: Request):
    return request.client.host if request.client else ""


@tools_router.get("/headers")
def headers(request: Request):
    return dict(request.headers)


# ------------------------------------------------------------------
# --- APPLICATION SETUP ---
# ------------------------------------------------------------------
def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    service: Optional[AccountService] = None,
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    database = database or Database(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.connect()
        database.create_all()
        yield
        database.close()

    app = FastAPI(title="Account Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.service = service or build_service(settings, database, dispatcher)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AccountError, account_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    @app.get("/", response_class=PlainTextResponse)
    def index():
        return "ok"

    @app.get("/health")
    def health_check():
        return {"status": "ok", "message": "Account service is running"}

    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(tools_router)

    return app
