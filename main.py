from functools import lru_cache
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from suraksha_jal import config, flows
from suraksha_jal.auth import (
    AccountService,
    AuthErrorCode,
    FirebaseIdentityProvider,
    IdentityProvider,
    InMemoryIdentityProvider,
)
from suraksha_jal.generation import GenerationBackend
from suraksha_jal.geocoding import Geocoder
from suraksha_jal.notifications import Notification, NotificationCenter
from suraksha_jal.profiles import ProfileRepository
from suraksha_jal.reports import HEALTH_WORKER, ReportRepository
from suraksha_jal.results import Failure, FailureKind, Result
from suraksha_jal.schemas import (
    HealthWorkerRegisterRequest,
    LoginRequest,
    ProfilePatch,
    RegisterRequest,
    Report,
    ReportSubmission,
    UserProfile,
)
from suraksha_jal.storage import InMemoryStore, JsonFileStore, KeyValueStore
from suraksha_jal.translations import LANGUAGES, TRANSLATIONS, LanguagePreference

config.configure_logging()

app = FastAPI(title="Suraksha Jal Backend", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins() or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---- Dependencies (overridden in tests) ----
@lru_cache()
def get_backend() -> GenerationBackend:
    return config.make_backend()


@lru_cache()
def get_store() -> KeyValueStore:
    if config.STORE_PATH:
        return JsonFileStore(config.STORE_PATH)
    return InMemoryStore()


def _log_notification(n: Notification) -> None:
    logger.info("Notification [{}] {}: {}", n.variant, n.title, n.description)


@lru_cache()
def get_notifications() -> NotificationCenter:
    center = NotificationCenter()
    center.subscribe(_log_notification)
    return center


@lru_cache()
def get_identity_provider() -> IdentityProvider:
    if config.FIREBASE_API_KEY:
        return FirebaseIdentityProvider(config.FIREBASE_API_KEY)
    logger.warning("FIREBASE_API_KEY is not set; accounts are kept in memory")
    return InMemoryIdentityProvider()


@lru_cache()
def get_geocoder() -> Geocoder:
    return Geocoder(config.GEOCODER_URL, config.GEOCODER_USER_AGENT)


def get_accounts(
    provider: IdentityProvider = Depends(get_identity_provider),
    store: KeyValueStore = Depends(get_store),
    notifications: NotificationCenter = Depends(get_notifications),
) -> AccountService:
    return AccountService(provider, ProfileRepository(store), notifications)


# ---- Failure -> HTTP ----
_CREDENTIAL_CODES = {
    AuthErrorCode.USER_NOT_FOUND.value,
    AuthErrorCode.WRONG_PASSWORD.value,
    AuthErrorCode.INVALID_CREDENTIAL.value,
    AuthErrorCode.NOT_HEALTH_WORKER.value,
}


def http_error(failure: Failure) -> HTTPException:
    if failure.kind == FailureKind.VALIDATION:
        return HTTPException(status_code=422, detail=failure.errors)
    if failure.kind == FailureKind.OVERLOADED:
        return HTTPException(status_code=503, detail="The service is busy right now. Please try again later.")
    if failure.kind == FailureKind.AUTH:
        if failure.code in _CREDENTIAL_CODES:
            status = 401
        elif failure.code == AuthErrorCode.EMAIL_ALREADY_IN_USE.value:
            status = 409
        else:
            status = 400
        return HTTPException(status_code=status, detail=failure.message)
    return HTTPException(status_code=502, detail="Something went wrong. Please try again later.")


def unwrap(result: Result) -> Any:
    if isinstance(result, Failure):
        raise http_error(result)
    return result.value


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "")})
    return JSONResponse(status_code=422, content={"detail": errors})


@app.get("/health")
def health():
    return {"ok": True}


# ---- AI flows ----
@app.post("/api/symptom-check")
def symptom_check(payload: Dict[str, Any] = Body(...), backend: GenerationBackend = Depends(get_backend)):
    return unwrap(flows.check_symptoms(payload, backend))


@app.post("/api/disease-information")
def disease_information(payload: Dict[str, Any] = Body(...), backend: GenerationBackend = Depends(get_backend)):
    return unwrap(flows.get_disease_information(payload, backend))


@app.post("/api/medicine-information")
def medicine_information(payload: Dict[str, Any] = Body(...), backend: GenerationBackend = Depends(get_backend)):
    return unwrap(flows.get_medicine_information(payload, backend))


@app.post("/api/medicine-dosage")
def medicine_dosage(payload: Dict[str, Any] = Body(...), backend: GenerationBackend = Depends(get_backend)):
    return unwrap(flows.suggest_medicine_dosage(payload, backend))


@app.post("/api/prescription")
def prescription(payload: Dict[str, Any] = Body(...), backend: GenerationBackend = Depends(get_backend)):
    return unwrap(flows.read_prescription(payload, backend))


@app.post("/api/face-verification")
def face_verification(payload: Dict[str, Any] = Body(...), backend: GenerationBackend = Depends(get_backend)):
    return unwrap(flows.verify_health_worker_face(payload, backend))


@app.post("/api/speech-to-text")
def speech_to_text(payload: Dict[str, Any] = Body(...), backend: GenerationBackend = Depends(get_backend)):
    return unwrap(flows.transcribe_speech(payload, backend))


@app.post("/api/text-to-speech")
def text_to_speech(payload: Dict[str, Any] = Body(...), backend: GenerationBackend = Depends(get_backend)):
    return unwrap(flows.text_to_speech(payload, backend))


@app.post("/api/reports/generate")
def reports_generate(
    payload: Dict[str, Any] = Body(...),
    save: bool = Query(False, description="Also store the generated reports."),
    backend: GenerationBackend = Depends(get_backend),
    store: KeyValueStore = Depends(get_store),
):
    output = unwrap(flows.generate_reports(payload, backend))
    if save:
        try:
            ReportRepository(store).add(output.reports)
        except OSError:
            logger.exception("Storing generated reports failed")
            raise HTTPException(status_code=500, detail="Failed to store reports")
    return output


@app.post("/api/local-area-reports")
def local_area_reports(payload: Dict[str, Any] = Body(...), backend: GenerationBackend = Depends(get_backend)):
    return unwrap(flows.get_local_area_reports(payload, backend))


@app.post("/api/translate")
def translate(payload: Dict[str, Any] = Body(...), backend: GenerationBackend = Depends(get_backend)):
    return unwrap(flows.translate_text(payload, backend))


@app.post("/api/chat")
def chat(payload: Dict[str, Any] = Body(...), backend: GenerationBackend = Depends(get_backend)):
    return unwrap(flows.chat(payload, backend))


# ---- Reports ----
@app.get("/api/reports", response_model=List[Report])
def list_reports(
    q: Optional[str] = None,
    address: Optional[str] = None,
    store: KeyValueStore = Depends(get_store),
):
    return ReportRepository(store).listing(query=q, user_address=address)


@app.post("/api/reports", response_model=Report, status_code=201)
def submit_community_report(
    submission: ReportSubmission,
    store: KeyValueStore = Depends(get_store),
    notifications: NotificationCenter = Depends(get_notifications),
):
    report = ReportRepository(store).submit(submission, "Community")
    notifications.success("Report Submitted", "Thank you for helping your community stay safe.")
    return report


@app.post("/api/health-worker/reports", response_model=Report, status_code=201)
def submit_health_worker_report(
    submission: ReportSubmission,
    store: KeyValueStore = Depends(get_store),
    notifications: NotificationCenter = Depends(get_notifications),
):
    report = ReportRepository(store).submit(submission, HEALTH_WORKER)
    notifications.success("Report Submitted", "Your report has been submitted successfully.")
    return report


# ---- Accounts ----
@app.post("/api/auth/login", response_model=UserProfile)
def login(req: LoginRequest, accounts: AccountService = Depends(get_accounts)):
    return unwrap(accounts.login_user(req))


@app.post("/api/auth/register", response_model=UserProfile)
def register(req: RegisterRequest, accounts: AccountService = Depends(get_accounts)):
    return unwrap(accounts.register_user(req))


@app.post("/api/health-worker/login", response_model=UserProfile)
def health_worker_login(req: LoginRequest, accounts: AccountService = Depends(get_accounts)):
    return unwrap(accounts.login_health_worker(req))


@app.post("/api/health-worker/register", response_model=UserProfile)
def health_worker_register(
    req: HealthWorkerRegisterRequest,
    accounts: AccountService = Depends(get_accounts),
    backend: GenerationBackend = Depends(get_backend),
):
    try:
        result = accounts.verify_and_register_health_worker(req, backend)
    except Exception:
        logger.exception("Health worker registration error")
        raise HTTPException(status_code=500, detail="Failed to register health worker")
    return unwrap(result)


@app.get("/api/profile/{email}", response_model=UserProfile)
def get_profile(email: str, store: KeyValueStore = Depends(get_store)):
    profile = ProfileRepository(store).get(email)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@app.patch("/api/profile/{email}", response_model=UserProfile)
def update_profile(
    email: str,
    patch: ProfilePatch,
    store: KeyValueStore = Depends(get_store),
    notifications: NotificationCenter = Depends(get_notifications),
):
    profile = ProfileRepository(store).update(email, patch)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    notifications.success("Profile Updated", "Your information has been saved.")
    return profile


# ---- Location ----
@app.get("/api/geocode/search")
def geocode_search(q: str = Query(..., min_length=1), geocoder: Geocoder = Depends(get_geocoder)):
    results = geocoder.search(q)
    if results is None:
        raise HTTPException(status_code=502, detail="Location search is unavailable. Please try again later.")
    return results


@app.get("/api/geocode/reverse")
def geocode_reverse(lat: float, lon: float, geocoder: Geocoder = Depends(get_geocoder)):
    return {"address": geocoder.describe(lat, lon)}


# ---- UI language ----
class LanguageChoice(BaseModel):
    language: str


@app.get("/api/languages")
def languages():
    return LANGUAGES


@app.get("/api/translations/{code}")
def translations(code: str):
    if code not in TRANSLATIONS:
        raise HTTPException(status_code=404, detail="Language not supported")
    return TRANSLATIONS[code]


@app.get("/api/language")
def get_language(store: KeyValueStore = Depends(get_store)):
    pref = LanguagePreference(store)
    return {"selected": pref.selected, "effective": pref.effective()}


@app.put("/api/language")
def set_language(choice: LanguageChoice, store: KeyValueStore = Depends(get_store)):
    pref = LanguagePreference(store)
    if not pref.select(choice.language):
        raise HTTPException(status_code=400, detail="Language not supported")
    return {"selected": pref.selected, "effective": pref.effective()}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
