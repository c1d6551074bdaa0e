import pytest
import requests
from conftest import PNG, ScriptedBackend

from suraksha_jal.auth import (
    AccountService,
    AuthErrorCode,
    FirebaseIdentityProvider,
    InMemoryIdentityProvider,
    Session,
    auth_failure,
    describe_auth_error,
)
from suraksha_jal.profiles import ProfileRepository
from suraksha_jal.results import Failure, FailureKind, Success
from suraksha_jal.schemas import HealthWorkerRegisterRequest, LoginRequest, RegisterRequest, UserProfile
from suraksha_jal.state_machines import FaceVerification


@pytest.fixture
def provider():
    return InMemoryIdentityProvider()


@pytest.fixture
def profiles(store):
    return ProfileRepository(store)


@pytest.fixture
def accounts(provider, profiles, notifications):
    return AccountService(provider, profiles, notifications)


def _register(email="asha@example.com"):
    return RegisterRequest(username="Asha", email=email, address="Pune, Maharashtra", password="secret123")


def _login(email="asha@example.com", password="secret123"):
    return LoginRequest(email=email, password=password)


def _verified_face():
    face = FaceVerification()
    face.verify(PNG, ScriptedBackend({"is_valid": True, "reason": ""}))
    return face


# ---- in-memory provider ----
def test_in_memory_provider_errors(provider):
    assert provider.sign_in("nobody@example.com", "whatever").code == "user_not_found"
    assert provider.register("not-an-email", "secret123", "x").code == "invalid_email"
    assert provider.register("a@example.com", "123", "x").code == "weak_password"
    provider.register("a@example.com", "secret123", "A")
    assert provider.register("a@example.com", "secret123", "A").code == "email_already_in_use"
    assert provider.sign_in("a@example.com", "wrong-pass").code == "wrong_password"


def test_in_memory_provider_locks_after_repeated_failures(provider):
    provider.register("a@example.com", "secret123", "A")
    for _ in range(InMemoryIdentityProvider.MAX_FAILED_ATTEMPTS):
        provider.sign_in("a@example.com", "nope-nope")
    assert provider.sign_in("a@example.com", "secret123").code == "too_many_requests"


# ---- messages ----
@pytest.mark.parametrize("code,action,message", [
    (AuthErrorCode.USER_NOT_FOUND, "login", "Account not found. Please register first."),
    (AuthErrorCode.WRONG_PASSWORD, "login", "Invalid email or password. Please try again."),
    (AuthErrorCode.INVALID_CREDENTIAL, "health_worker_login", "Invalid email or password. Please try again."),
    (AuthErrorCode.TOO_MANY_REQUESTS, "login", "Too many login attempts. Please try again later."),
    (AuthErrorCode.EMAIL_ALREADY_IN_USE, "register", "This email is already registered. Please try logging in."),
    (AuthErrorCode.EMAIL_ALREADY_IN_USE, "health_worker_register", "This email is already registered as a health worker. Please try logging in."),
    (AuthErrorCode.WEAK_PASSWORD, "register", "The password is too weak. Please use at least 8 characters."),
    (AuthErrorCode.UNKNOWN, "login", "An unexpected error occurred."),
    (AuthErrorCode.UNKNOWN, "register", "An unexpected error occurred. Please try again."),
])
def test_describe_auth_error(code, action, message):
    assert describe_auth_error(auth_failure(code), action) == message


def test_describe_non_auth_failure():
    failure = Failure(FailureKind.UNAVAILABLE, "down")
    assert "unavailable" in describe_auth_error(failure, "login")


# ---- user workflows ----
def test_register_then_login(accounts, profiles, received):
    registered = accounts.register_user(_register())
    assert isinstance(registered, Success)
    assert registered.value.address == "Pune, Maharashtra"
    assert profiles.current().email == "asha@example.com"

    profiles.clear_current()
    logged_in = accounts.login_user(_login())
    assert logged_in.value.name == "Asha"
    assert logged_in.value.address == "Pune, Maharashtra"
    assert [n.title for n in received] == ["Registration Successful", "Login Successful"]


def test_login_fills_name_from_provider(provider, accounts):
    provider.register("ravi@example.com", "secret123", "Ravi")
    profile = accounts.login_user(_login("ravi@example.com")).value
    assert profile.name == "Ravi"
    assert profile.email == "ravi@example.com"


def test_login_failure_publishes_mapped_message(accounts, received):
    result = accounts.login_user(_login("ghost@example.com"))
    assert result.kind == FailureKind.AUTH
    assert result.code == "user_not_found"
    assert result.message == "Account not found. Please register first."
    assert received[-1].title == "Login Failed"
    assert received[-1].variant == "destructive"


def test_register_duplicate_email(accounts):
    accounts.register_user(_register())
    result = accounts.register_user(_register())
    assert result.code == "email_already_in_use"


# ---- health worker workflows ----
def test_health_worker_registration_requires_valid_face(accounts, provider, received):
    result = accounts.register_health_worker(_register(), FaceVerification())
    assert result.code == "face_not_verified"
    assert provider.sign_in("asha@example.com", "secret123").code == "user_not_found"
    assert received[-1].variant == "destructive"


def test_health_worker_registration_stores_flag_and_photo(accounts, profiles):
    result = accounts.register_health_worker(_register(), _verified_face())
    assert result.value.is_health_worker
    assert result.value.photo_url == PNG
    assert profiles.current().is_health_worker
    assert profiles.get("asha@example.com").is_health_worker


def test_health_worker_login_denied_for_regular_user(accounts, received):
    accounts.register_user(_register())
    result = accounts.login_health_worker(_login())
    assert result.code == "not_health_worker"
    assert result.message == "This email is not registered as a health worker."
    assert received[-1].title == "Access Denied"


def test_health_worker_login(accounts, profiles):
    accounts.register_health_worker(_register(), _verified_face())
    profiles.clear_current()
    result = accounts.login_health_worker(_login())
    assert result.value.is_health_worker
    assert profiles.current().email == "asha@example.com"


def test_verify_and_register_with_rejected_face(accounts, received):
    req = HealthWorkerRegisterRequest(**_register().model_dump(), face_image=PNG)
    backend = ScriptedBackend({"is_valid": False, "reason": "Image appears to be a photo of a screen."})
    result = accounts.verify_and_register_health_worker(req, backend)
    assert result.code == "face_not_verified"
    assert "photo of a screen" in result.message


def test_verify_and_register_with_accepted_face(accounts):
    req = HealthWorkerRegisterRequest(**_register().model_dump(), face_image=PNG)
    result = accounts.verify_and_register_health_worker(req, ScriptedBackend({"is_valid": True, "reason": ""}))
    assert result.value.is_health_worker


# ---- Firebase REST mapping ----
class FakeResponse:
    def __init__(self, status_code, data):
        self.status_code = status_code
        self.data = data

    def json(self):
        return self.data


class FakeHttp:
    def __init__(self, *responses, error=None):
        self.responses = list(responses)
        self.error = error
        self.calls = []

    def post(self, url, params=None, json=None, timeout=None):
        self.calls.append((url, params, json))
        if self.error:
            raise self.error
        return self.responses.pop(0)


def test_firebase_sign_in():
    http = FakeHttp(FakeResponse(200, {"localId": "u1", "email": "a@example.com", "displayName": "Asha", "idToken": "tok"}))
    result = FirebaseIdentityProvider("key", session=http).sign_in("a@example.com", "secret123")
    assert result.value == Session(uid="u1", email="a@example.com", display_name="Asha", id_token="tok")
    url, params, body = http.calls[0]
    assert url.endswith("accounts:signInWithPassword")
    assert params == {"key": "key"}
    assert body["returnSecureToken"] is True


@pytest.mark.parametrize("message,code", [
    ("EMAIL_NOT_FOUND", "user_not_found"),
    ("INVALID_LOGIN_CREDENTIALS", "invalid_credential"),
    ("TOO_MANY_ATTEMPTS_TRY_LATER : Access disabled", "too_many_requests"),
    ("WEAK_PASSWORD : Password should be at least 6 characters", "weak_password"),
    ("SOMETHING_NEW", "unknown"),
])
def test_firebase_error_codes(message, code):
    http = FakeHttp(FakeResponse(400, {"error": {"code": 400, "message": message}}))
    result = FirebaseIdentityProvider("key", session=http).sign_in("a@example.com", "secret123")
    assert result.kind == FailureKind.AUTH
    assert result.code == code


def test_firebase_register_sets_display_name():
    http = FakeHttp(
        FakeResponse(200, {"localId": "u2", "email": "b@example.com", "idToken": "tok"}),
        FakeResponse(200, {"localId": "u2", "displayName": "Bina"}),
    )
    result = FirebaseIdentityProvider("key", session=http).register("b@example.com", "secret123", "Bina")
    assert result.value.display_name == "Bina"
    assert http.calls[1][0].endswith("accounts:update")
    assert http.calls[1][2]["displayName"] == "Bina"


def test_firebase_unreachable():
    http = FakeHttp(error=requests.exceptions.ConnectionError("offline"))
    result = FirebaseIdentityProvider("key", session=http).sign_in("a@example.com", "secret123")
    assert result.kind == FailureKind.UNAVAILABLE


def test_service_accepts_any_provider(profiles, notifications):
    class Fixed(InMemoryIdentityProvider):
        def sign_in(self, email, password):
            return Success(Session(uid="1", email=email, display_name="Fixed"))

    service = AccountService(Fixed(), profiles, notifications)
    profiles.save(UserProfile(email="f@example.com", address="Kolkata, West Bengal"))
    profile = service.login_user(_login("f@example.com")).value
    assert profile.name == "Fixed"
    assert profile.address == "Kolkata, West Bengal"
