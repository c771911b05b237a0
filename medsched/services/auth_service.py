import logging
import secrets
from datetime import timedelta
from typing import NamedTuple

import jwt
import pyotp
from sqlalchemy.orm import Session

from medsched.auth import jwt_handler
from medsched.auth.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password
from medsched.core import config
from medsched.core.clock import Clock, utc_now
from medsched.core.errors import AuthenticationFailed, Conflict, NotFound, ValidationFailed
from medsched.models.session import Session as UserSession
from medsched.models.session import TokenType, VerificationToken
from medsched.models.user import Role, User
from medsched.services.notifier import LoggingNotifier, Notifier, notify

logger = logging.getLogger(__name__)

SELF_REGISTRABLE_ROLES = frozenset({Role.PATIENT.value, Role.DOCTOR.value})


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str
    user: User


class TwoFactorSetup(NamedTuple):
    secret: str
    provisioning_uri: str


def _check_password_strength(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')


class AuthService:
    def __init__(self, db: Session, clock: Clock = utc_now, notifier: Notifier | None = None):
        self.db = db
        self.clock = clock
        self.notifier = notifier or LoggingNotifier()

    def register(self, name: str, email: str, password: str, role: str = Role.PATIENT.value) -> User:
        email = email.strip().lower()
        if role not in SELF_REGISTRABLE_ROLES:
            raise ValidationFailed('Role must be patient or doctor.')
        _check_password_strength(password)

        if self.db.query(User).filter(User.email == email).first():
            raise Conflict('User with this email already exists.')

        user = User(
            name=name.strip(),
            email=email,
            hashed_password=hash_password(password),
            role=role,
        )
        self.db.add(user)
        self.db.flush()

        token = self._issue_verification_token(
            user,
            TokenType.EMAIL_VERIFICATION,
            timedelta(hours=config.VERIFICATION_TOKEN_HOURS),
        )
        self.db.commit()
        self.db.refresh(user)

        logger.info("Registered %s user %s", role, user.id)
        notify(
            self.notifier,
            user.email,
            'Verify your email address',
            f'Use this code to verify your email address: {token.token}',
        )
        return user

    def login(
        self,
        email: str,
        password: str,
        otp_code: str | None = None,
        user_agent: str | None = None,
        ip: str | None = None,
    ) -> TokenPair:
        user = self.db.query(User).filter(User.email == email.strip().lower()).first()
        if user is None or not verify_password(password, user.hashed_password):
            logger.debug("Login failed for %s", email)
            raise AuthenticationFailed('Invalid email or password.')

        if user.two_factor_enabled:
            if not otp_code:
                raise AuthenticationFailed('Two-factor authentication code required.')
            if not pyotp.TOTP(user.two_factor_secret).verify(otp_code):
                raise AuthenticationFailed('Invalid two-factor authentication code.')

        now = self.clock()
        session = UserSession(
            user_id=user.id,
            refresh_token_id=jwt_handler.new_refresh_token_id(),
            expires_at=now + timedelta(minutes=config.JWT_REFRESH_EXPIRES_MINUTES),
            user_agent=(user_agent or '')[:255] or None,
            ip=ip,
        )
        user.last_login = now
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)

        logger.info("User %s logged in (session %s)", user.id, session.id)
        return self._token_pair(user, session)

    def refresh(self, refresh_token: str) -> TokenPair:
        try:
            payload = jwt_handler.decode_token(refresh_token, expected_type=jwt_handler.REFRESH_TOKEN_TYPE)
        except jwt.PyJWTError as exc:
            raise AuthenticationFailed('Invalid or expired refresh token.') from exc

        session = self.db.query(UserSession).filter(
            UserSession.refresh_token_id == payload.get('jti'),
        ).first()
        if session is None or session.expires_at <= self.clock():
            raise AuthenticationFailed('Session has expired or been revoked.')

        user = self.db.get(User, session.user_id)
        if user is None:
            raise AuthenticationFailed('User not found.')

        session.refresh_token_id = jwt_handler.new_refresh_token_id()
        self.db.commit()
        self.db.refresh(session)
        return self._token_pair(user, session)

    def logout(self, session_id: int) -> None:
        session = self.db.get(UserSession, session_id)
        if session is not None:
            self.db.delete(session)
            self.db.commit()
            logger.info("Session %s revoked", session_id)

    def authenticate(self, access_token: str) -> tuple[User, int]:
        """Resolve an access token to its user and session id."""
        try:
            payload = jwt_handler.decode_token(access_token)
        except jwt.PyJWTError as exc:
            raise AuthenticationFailed('Invalid or expired token.') from exc

        session_id = payload.get('sid')
        session = self.db.get(UserSession, session_id) if session_id is not None else None
        if session is None or session.expires_at <= self.clock():
            raise AuthenticationFailed('Session has expired or been revoked.')

        try:
            user_id = int(payload.get('sub'))
        except (TypeError, ValueError) as exc:
            raise AuthenticationFailed('Invalid token subject.') from exc

        user = self.db.get(User, user_id)
        if user is None or session.user_id != user.id:
            raise AuthenticationFailed('User not found.')
        return user, session.id

    def verify_email(self, token: str) -> User:
        record = self._consume_token(token, TokenType.EMAIL_VERIFICATION)
        user = self.db.get(User, record.user_id)
        user.email_verified = True
        self.db.delete(record)
        self.db.commit()
        self.db.refresh(user)
        return user

    def request_password_reset(self, email: str) -> None:
        user = self.db.query(User).filter(User.email == email.strip().lower()).first()
        if user is None:
            # Same response for unknown addresses.
            logger.info("Password reset requested for unknown email")
            return

        token = self._issue_verification_token(
            user,
            TokenType.PASSWORD_RESET,
            timedelta(minutes=config.PASSWORD_RESET_TOKEN_MINUTES),
        )
        self.db.commit()
        notify(
            self.notifier,
            user.email,
            'Reset your password',
            f'Use this code to reset your password: {token.token}',
        )

    def reset_password(self, token: str, new_password: str) -> None:
        _check_password_strength(new_password)
        record = self._consume_token(token, TokenType.PASSWORD_RESET)
        user = self.db.get(User, record.user_id)
        user.hashed_password = hash_password(new_password)
        self.db.delete(record)
        self.db.query(UserSession).filter(UserSession.user_id == user.id).delete()
        self.db.commit()
        logger.info("Password reset for user %s", user.id)

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.hashed_password):
            raise ValidationFailed('Current password is incorrect.')
        _check_password_strength(new_password)

        user.hashed_password = hash_password(new_password)
        self.db.commit()
        logger.info("Password changed for user %s", user.id)

    def setup_two_factor(self, user: User) -> TwoFactorSetup:
        if user.two_factor_enabled:
            raise ValidationFailed('Two-factor authentication is already enabled.')

        secret = pyotp.random_base32()
        user.two_factor_secret = secret
        self.db.commit()

        uri = pyotp.TOTP(secret).provisioning_uri(name=user.email, issuer_name=config.TOTP_ISSUER)
        return TwoFactorSetup(secret=secret, provisioning_uri=uri)

    def enable_two_factor(self, user: User, otp_code: str) -> None:
        if not user.two_factor_secret:
            raise ValidationFailed('Two-factor authentication has not been set up.')
        if not pyotp.TOTP(user.two_factor_secret).verify(otp_code):
            raise ValidationFailed('Invalid two-factor authentication code.')

        user.two_factor_enabled = True
        self.db.commit()
        logger.info("Two-factor authentication enabled for user %s", user.id)

    def disable_two_factor(self, user: User, password: str) -> None:
        if not verify_password(password, user.hashed_password):
            raise ValidationFailed('Password is incorrect.')

        user.two_factor_enabled = False
        user.two_factor_secret = None
        self.db.commit()
        logger.info("Two-factor authentication disabled for user %s", user.id)

    def _token_pair(self, user: User, session: UserSession) -> TokenPair:
        access_token = jwt_handler.create_access_token(
            user_id=user.id,
            email=user.email,
            role=user.role,
            session_id=session.id,
        )
        refresh_token = jwt_handler.create_refresh_token(
            user_id=user.id,
            token_id=session.refresh_token_id,
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token, user=user)

    def _issue_verification_token(self, user: User, token_type: TokenType, lifetime: timedelta) -> VerificationToken:
        token = VerificationToken(
            user_id=user.id,
            token=secrets.token_urlsafe(32),
            type=token_type.value,
            expires_at=self.clock() + lifetime,
        )
        self.db.add(token)
        return token

    def _consume_token(self, token: str, token_type: TokenType) -> VerificationToken:
        record = self.db.query(VerificationToken).filter(
            VerificationToken.token == token,
            VerificationToken.type == token_type.value,
        ).first()
        if record is None:
            raise NotFound('Token not found.')
        if record.expires_at <= self.clock():
            raise ValidationFailed('Token has expired.')
        return record
