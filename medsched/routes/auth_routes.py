from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from medsched.auth.dependencies import AuthContext, get_auth_context, get_clock, get_current_user, get_notifier
from medsched.core.clock import Clock
from medsched.database import get_db
from medsched.models.user import Role, User
from medsched.routes.user_routes import UserResponse, to_user_response
from medsched.services.auth_service import AuthService
from medsched.services.notifier import Notifier

router = APIRouter(tags=['auth'])


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not normalized or '@' not in normalized:
        raise ValueError('A valid email address is required.')
    return normalized


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=100)
    password: str
    role: Role = Role.PATIENT

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class LoginRequest(BaseModel):
    email: str
    password: str
    otp_code: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenRequest(BaseModel):
    token: str


class PasswordResetRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class PasswordResetConfirmRequest(BaseModel):
    token: str
    new_password: str


class OtpRequest(BaseModel):
    otp_code: str


class PasswordConfirmRequest(BaseModel):
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = 'bearer'
    user: UserResponse


class TwoFactorSetupResponse(BaseModel):
    secret: str
    provisioning_uri: str


class MessageResponse(BaseModel):
    message: str


def get_auth_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> AuthService:
    return AuthService(db, clock=clock, notifier=notifier)


@router.post('/register', response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    user = service.register(name=data.name, email=data.email, password=data.password, role=data.role.value)
    return to_user_response(user)


@router.post('/login', response_model=TokenResponse)
def login(data: LoginRequest, request: Request, service: AuthService = Depends(get_auth_service)):
    pair = service.login(
        email=data.email,
        password=data.password,
        otp_code=data.otp_code,
        user_agent=request.headers.get('user-agent'),
        ip=request.client.host if request.client else None,
    )
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        user=to_user_response(pair.user),
    )


@router.post('/refresh', response_model=TokenResponse)
def refresh(data: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    pair = service.refresh(data.refresh_token)
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        user=to_user_response(pair.user),
    )


@router.post('/logout', response_model=MessageResponse)
def logout(
    context: AuthContext = Depends(get_auth_context),
    service: AuthService = Depends(get_auth_service),
):
    service.logout(context.session_id)
    return MessageResponse(message='Logged out successfully')


@router.post('/verify-email', response_model=UserResponse)
def verify_email(data: TokenRequest, service: AuthService = Depends(get_auth_service)):
    return to_user_response(service.verify_email(data.token))


@router.post('/password-reset/request', response_model=MessageResponse)
def request_password_reset(data: PasswordResetRequest, service: AuthService = Depends(get_auth_service)):
    service.request_password_reset(data.email)
    return MessageResponse(message='If the email is registered, a reset code has been sent')


@router.post('/password-reset/confirm', response_model=MessageResponse)
def confirm_password_reset(data: PasswordResetConfirmRequest, service: AuthService = Depends(get_auth_service)):
    service.reset_password(data.token, data.new_password)
    return MessageResponse(message='Password has been reset')


@router.post('/2fa/setup', response_model=TwoFactorSetupResponse)
def setup_two_factor(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    setup = service.setup_two_factor(current_user)
    return TwoFactorSetupResponse(secret=setup.secret, provisioning_uri=setup.provisioning_uri)


@router.post('/2fa/enable', response_model=MessageResponse)
def enable_two_factor(
    data: OtpRequest,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    service.enable_two_factor(current_user, data.otp_code)
    return MessageResponse(message='Two-factor authentication enabled')


@router.post('/2fa/disable', response_model=MessageResponse)
def disable_two_factor(
    data: PasswordConfirmRequest,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    service.disable_two_factor(current_user, data.password)
    return MessageResponse(message='Two-factor authentication disabled')


@router.get('/me', response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return to_user_response(current_user)
