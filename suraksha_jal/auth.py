import re
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import requests
from loguru import logger

from suraksha_jal.generation import GenerationBackend
from suraksha_jal.notifications import NotificationCenter
from suraksha_jal.profiles import ProfileRepository
from suraksha_jal.results import Failure, FailureKind, Result, Success
from suraksha_jal.schemas import EMAIL_PATTERN, HealthWorkerRegisterRequest, LoginRequest, RegisterRequest, UserProfile
from suraksha_jal.state_machines import FaceVerification, IllegalTransition


class AuthErrorCode(str, Enum):
    USER_NOT_FOUND = "user_not_found"
    WRONG_PASSWORD = "wrong_password"
    INVALID_CREDENTIAL = "invalid_credential"
    INVALID_EMAIL = "invalid_email"
    TOO_MANY_REQUESTS = "too_many_requests"
    OPERATION_NOT_ALLOWED = "operation_not_allowed"
    EMAIL_ALREADY_IN_USE = "email_already_in_use"
    WEAK_PASSWORD = "weak_password"
    NOT_HEALTH_WORKER = "not_health_worker"
    FACE_NOT_VERIFIED = "face_not_verified"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Session:
    uid: str
    email: str
    display_name: str = ""
    photo_url: str = ""
    id_token: str = ""


def auth_failure(code: AuthErrorCode, message: str = "") -> Failure:
    return Failure(FailureKind.AUTH, message or code.value, code=code.value)


class IdentityProvider:
    def sign_in(self, email: str, password: str) -> Result[Session]:
        raise NotImplementedError

    def register(self, email: str, password: str, display_name: str) -> Result[Session]:
        raise NotImplementedError


class InMemoryIdentityProvider(IdentityProvider):
    """Local accounts for development and tests"""

    MAX_FAILED_ATTEMPTS = 5
    LOCKOUT_SECONDS = 300

    def __init__(self):
        self._accounts: Dict[str, Dict[str, str]] = {}
        self._failures: Dict[str, Tuple[int, float]] = {}  # email -> (count, last failure)

    def register(self, email: str, password: str, display_name: str) -> Result[Session]:
        if not re.match(EMAIL_PATTERN, email or ""):
            return auth_failure(AuthErrorCode.INVALID_EMAIL)
        if email in self._accounts:
            return auth_failure(AuthErrorCode.EMAIL_ALREADY_IN_USE)
        if len(password or "") < 6:
            return auth_failure(AuthErrorCode.WEAK_PASSWORD)
        uid = uuid.uuid4().hex
        self._accounts[email] = {"uid": uid, "password": password, "display_name": display_name}
        return Success(Session(uid=uid, email=email, display_name=display_name, id_token=uuid.uuid4().hex))

    def sign_in(self, email: str, password: str) -> Result[Session]:
        if not re.match(EMAIL_PATTERN, email or ""):
            return auth_failure(AuthErrorCode.INVALID_EMAIL)
        count, last = self._failures.get(email, (0, 0.0))
        if count >= self.MAX_FAILED_ATTEMPTS and time.monotonic() - last < self.LOCKOUT_SECONDS:
            return auth_failure(AuthErrorCode.TOO_MANY_REQUESTS)
        account = self._accounts.get(email)
        if account is None:
            return auth_failure(AuthErrorCode.USER_NOT_FOUND)
        if account["password"] != password:
            self._failures[email] = (count + 1, time.monotonic())
            return auth_failure(AuthErrorCode.WRONG_PASSWORD)
        self._failures.pop(email, None)
        return Success(Session(
            uid=account["uid"],
            email=email,
            display_name=account["display_name"],
            id_token=uuid.uuid4().hex,
        ))


# ---- Firebase Identity Toolkit (REST) ----
FIREBASE_ERRORS = {
    "EMAIL_NOT_FOUND": AuthErrorCode.USER_NOT_FOUND,
    "INVALID_PASSWORD": AuthErrorCode.WRONG_PASSWORD,
    "INVALID_LOGIN_CREDENTIALS": AuthErrorCode.INVALID_CREDENTIAL,
    "INVALID_EMAIL": AuthErrorCode.INVALID_EMAIL,
    "TOO_MANY_ATTEMPTS_TRY_LATER": AuthErrorCode.TOO_MANY_REQUESTS,
    "OPERATION_NOT_ALLOWED": AuthErrorCode.OPERATION_NOT_ALLOWED,
    "PASSWORD_LOGIN_DISABLED": AuthErrorCode.OPERATION_NOT_ALLOWED,
    "EMAIL_EXISTS": AuthErrorCode.EMAIL_ALREADY_IN_USE,
    "WEAK_PASSWORD": AuthErrorCode.WEAK_PASSWORD,
}


class FirebaseIdentityProvider(IdentityProvider):
    BASE_URL = "https://identitytoolkit.googleapis.com/v1/accounts"

    def __init__(self, api_key: str, session: Optional[requests.Session] = None, timeout: float = 10):
        self.api_key = api_key
        self.http = session or requests.Session()
        self.timeout = timeout

    def _post(self, action: str, payload: Dict[str, Any]) -> Result[Dict[str, Any]]:
        url = f"{self.BASE_URL}:{action}"
        try:
            resp = self.http.post(url, params={"key": self.api_key}, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning("Identity provider unreachable: {}", e)
            return Failure(FailureKind.UNAVAILABLE, "Identity provider is unreachable")
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            message = (data.get("error") or {}).get("message", "") if isinstance(data, dict) else ""
            # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
            key = message.split(" : ")[0].strip()
            code = FIREBASE_ERRORS.get(key, AuthErrorCode.UNKNOWN)
            logger.info("Identity provider rejected {}: {}", action, message or resp.status_code)
            return auth_failure(code, message)
        return Success(data)

    def sign_in(self, email: str, password: str) -> Result[Session]:
        result = self._post("signInWithPassword", {"email": email, "password": password, "returnSecureToken": True})
        if isinstance(result, Failure):
            return result
        data = result.value
        return Success(Session(
            uid=data.get("localId", ""),
            email=data.get("email", email),
            display_name=data.get("displayName", ""),
            photo_url=data.get("profilePicture", ""),
            id_token=data.get("idToken", ""),
        ))

    def register(self, email: str, password: str, display_name: str) -> Result[Session]:
        result = self._post("signUp", {"email": email, "password": password, "returnSecureToken": True})
        if isinstance(result, Failure):
            return result
        data = result.value
        token = data.get("idToken", "")
        update = self._post("update", {"idToken": token, "displayName": display_name, "returnSecureToken": False})
        if isinstance(update, Failure):
            logger.warning("Could not set display name for {}: {}", email, update.message)
        return Success(Session(uid=data.get("localId", ""), email=data.get("email", email), display_name=display_name, id_token=token))


# ---- User-facing messages ----
_LOGIN_MESSAGES = {
    AuthErrorCode.USER_NOT_FOUND: "Account not found. Please register first.",
    AuthErrorCode.WRONG_PASSWORD: "Invalid email or password. Please try again.",
    AuthErrorCode.INVALID_CREDENTIAL: "Invalid email or password. Please try again.",
    AuthErrorCode.INVALID_EMAIL: "The email address you entered is not valid.",
    AuthErrorCode.TOO_MANY_REQUESTS: "Too many login attempts. Please try again later.",
    AuthErrorCode.OPERATION_NOT_ALLOWED: "Email/Password sign-in is not enabled. Please contact an administrator.",
    AuthErrorCode.NOT_HEALTH_WORKER: "This email is not registered as a health worker.",
}

_REGISTER_MESSAGES = {
    AuthErrorCode.EMAIL_ALREADY_IN_USE: "This email is already registered. Please try logging in.",
    AuthErrorCode.WEAK_PASSWORD: "The password is too weak. Please use at least 8 characters.",
    AuthErrorCode.INVALID_EMAIL: "The email address you entered is not valid.",
    AuthErrorCode.FACE_NOT_VERIFIED: "Please capture and verify your face before registering.",
}


def describe_auth_error(failure: Failure, action: str) -> str:
    """Map a provider failure to the message shown for ``action``.

    action is one of: login, register, health_worker_login, health_worker_register.
    """
    if failure.kind != FailureKind.AUTH:
        return "The sign-in service is unavailable. Please try again later."
    try:
        code = AuthErrorCode(failure.code)
    except ValueError:
        code = AuthErrorCode.UNKNOWN

    if action == "health_worker_login" and code == AuthErrorCode.USER_NOT_FOUND:
        return _LOGIN_MESSAGES[AuthErrorCode.WRONG_PASSWORD]
    if action == "health_worker_register" and code == AuthErrorCode.EMAIL_ALREADY_IN_USE:
        return "This email is already registered as a health worker. Please try logging in."
    if action.endswith("login"):
        return _LOGIN_MESSAGES.get(code, "An unexpected error occurred.")
    return _REGISTER_MESSAGES.get(code, "An unexpected error occurred. Please try again.")


class AccountService:
    """Sign-in and registration workflows for users and health workers"""

    def __init__(self, provider: IdentityProvider, profiles: ProfileRepository, notifications: NotificationCenter):
        self.provider = provider
        self.profiles = profiles
        self.notifications = notifications

    def _fail(self, failure: Failure, action: str, title: str) -> Failure:
        message = describe_auth_error(failure, action)
        self.notifications.error(title, message)
        return Failure(failure.kind, message, failure.errors, failure.code)

    def login_user(self, req: LoginRequest) -> Result[UserProfile]:
        result = self.provider.sign_in(req.email, req.password)
        if isinstance(result, Failure):
            return self._fail(result, "login", "Login Failed")
        session = result.value

        current = self.profiles.current()
        base = current if current is not None and current.email == session.email else self.profiles.get(session.email)
        if base is None:
            base = UserProfile(email=session.email)
        # keep details the user entered, fill the gaps from the provider
        profile = base.model_copy(update={
            "email": session.email,
            "name": base.name or session.display_name,
        })
        self.profiles.save(profile)
        self.notifications.success("Login Successful", "Redirecting to dashboard...")
        return Success(profile)

    def register_user(self, req: RegisterRequest) -> Result[UserProfile]:
        result = self.provider.register(req.email, req.password, req.username)
        if isinstance(result, Failure):
            return self._fail(result, "register", "Registration Failed")
        profile = UserProfile(name=req.username, email=req.email, address=req.address)
        self.profiles.save(profile)
        self.notifications.success("Registration Successful", "You have been logged in automatically.")
        return Success(profile)

    def login_health_worker(self, req: LoginRequest) -> Result[UserProfile]:
        result = self.provider.sign_in(req.email, req.password)
        if isinstance(result, Failure):
            return self._fail(result, "health_worker_login", "Login Failed")
        session = result.value

        stored = self.profiles.get(session.email)
        if stored is None or not stored.is_health_worker:
            return self._fail(auth_failure(AuthErrorCode.NOT_HEALTH_WORKER), "health_worker_login", "Access Denied")

        profile = stored.model_copy(update={
            "name": stored.name or session.display_name,
            "email": session.email,
            "photo_url": stored.photo_url or session.photo_url,
        })
        self.profiles.save(profile)
        self.notifications.success("Login Successful", "Redirecting to health worker dashboard...")
        return Success(profile)

    def register_health_worker(self, req: RegisterRequest, face: FaceVerification) -> Result[UserProfile]:
        try:
            photo = face.registration_photo()
        except IllegalTransition:
            return self._fail(auth_failure(AuthErrorCode.FACE_NOT_VERIFIED), "health_worker_register", "Face Not Verified")

        result = self.provider.register(req.email, req.password, req.username)
        if isinstance(result, Failure):
            return self._fail(result, "health_worker_register", "Registration Failed")
        profile = UserProfile(
            name=req.username,
            email=req.email,
            address=req.address,
            photo_url=photo,
            is_health_worker=True,
        )
        self.profiles.save(profile)
        self.notifications.success("Registration Successful", "Your health worker account has been created.")
        return Success(profile)

    def verify_and_register_health_worker(self, req: HealthWorkerRegisterRequest, backend: GenerationBackend) -> Result[UserProfile]:
        """Run the face check on the submitted capture, then register"""
        face = FaceVerification()
        face.verify(req.face_image, backend)
        if not face.can_register:
            self.notifications.error("Face Not Verified", face.message)
            return auth_failure(AuthErrorCode.FACE_NOT_VERIFIED, face.message)
        return self.register_health_worker(req, face)
