import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates

from config import (
    DATABASE_URL,
    DISCORD_WEBHOOK_URL,
    LOG_LEVEL,
    STORAGE_BACKEND,
    TEMPLATES_DIR,
    WEBHOOK_REQUIRED,
)
from database import make_engine, make_session_factory
from errors import (
    ConfigurationError,
    DuplicateUsername,
    InputValidationError,
    PersistenceError,
    UpstreamError,
)
from notifier import DiscordNotifier, report_filename
from report import count_retained_lines, generate_community_file
from schemas import (
    CommunityCreate,
    CommunityPublic,
    CreateCommunityRequest,
    CreateUserRequest,
    UserCreate,
    UserPublic,
    field_errors,
    validate_payload,
)
from storage import DatabaseStorage, MemoryStorage, Storage

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter()


def build_storage(backend: str = STORAGE_BACKEND, database_url: str = DATABASE_URL) -> Storage:
    """Construct the configured record store. Called once per application."""
    if backend == "memory":
        return MemoryStorage()
    if backend != "database":
        raise ValueError(f"Unknown STORAGE_BACKEND {backend!r}, expected 'database' or 'memory'")
    return DatabaseStorage(make_session_factory(make_engine(database_url)))


def get_storage(request: Request) -> Storage:
    """FastAPI dependency returning the store built at startup."""
    return request.app.state.storage


def get_notifier(request: Request) -> DiscordNotifier:
    return request.app.state.notifier


def _validation_response(errors: List[Dict[str, str]]) -> JSONResponse:
    return JSONResponse(
        {"success": False, "message": "Validation error", "errors": errors},
        status_code=400,
    )


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


@router.get("/", response_class=HTMLResponse)
def index(request: Request):
    """Submission form."""
    return templates.TemplateResponse(request, "index.html", {})


@router.get("/api/health")
def health():
    return {"status": "ok"}


# ---------------- Communities ----------------

@router.post("/api/communities")
async def create_community(
    payload: Any = Body(None),
    storage: Storage = Depends(get_storage),
    notifier: DiscordNotifier = Depends(get_notifier),
):
    """
    Validate a submission, generate its community file, deliver it to the
    webhook when one applies, then store it.

    Payload:
        {
            "rename": "...",
            "robuxFund": "...",          (or "robloxFriend")
            "communitiesMember": "...",
            "ownerUsername": "...",
            "textContent": "...",        (or "fileContent" + "fileName")
            "discordWebhook": "https://discord.com/api/webhooks/..."   (optional)
        }

    The webhook is called before the record is written, so a failed delivery
    leaves nothing behind. The reverse case, delivered but not saved, is logged.
    """
    try:
        submission = validate_payload(CreateCommunityRequest, payload)
    except InputValidationError as exc:
        logger.info("Rejected community submission: %s", exc.errors)
        return _validation_response(exc.errors)

    generated = generate_community_file(submission.text_content, submission)

    try:
        delivered = await notifier.send_report(
            generated,
            submission.rename,
            url=submission.discord_webhook,
            line_count=count_retained_lines(submission.text_content),
        )
    except ConfigurationError:
        logger.error("Webhook delivery is required but DISCORD_WEBHOOK_URL is not set")
        return _error_response(500, "Webhook is not configured")
    except UpstreamError:
        return _error_response(500, "Failed to deliver community file to webhook")

    try:
        community = await storage.create_community(
            CommunityCreate(
                rename=submission.rename,
                robux_fund=submission.robux_fund,
                communities_member=submission.communities_member,
                owner_username=submission.owner_username,
                original_file_name=submission.file_name,
                discord_webhook=submission.discord_webhook,
                original_content=submission.text_content,
                generated_content=generated,
            )
        )
    except PersistenceError:
        if delivered:
            logger.exception(
                "Community %r was delivered to the webhook but could not be saved",
                submission.rename,
            )
        else:
            logger.exception("Failed to save community %r", submission.rename)
        return _error_response(500, "Failed to save community")

    logger.info("Created community %s (%r)", community.id, community.rename)
    if delivered:
        message = "Community file generated and sent to Discord successfully!"
    else:
        message = "Community file generated successfully!"
    return JSONResponse({"success": True, "message": message, "communityId": community.id})


@router.get("/api/communities", response_model=List[CommunityPublic])
async def list_communities(storage: Storage = Depends(get_storage)):
    """All stored submissions, oldest first."""
    try:
        return await storage.get_all_communities()
    except PersistenceError:
        logger.exception("Error fetching communities")
        return _error_response(500, "Failed to fetch communities")


@router.get("/api/communities/{community_id}", response_model=CommunityPublic)
async def get_community(community_id: int, storage: Storage = Depends(get_storage)):
    try:
        community = await storage.get_community(community_id)
    except PersistenceError:
        logger.exception("Error fetching community %s", community_id)
        return _error_response(500, "Failed to fetch community")
    if community is None:
        return _error_response(404, "Community not found")
    return community


@router.get("/api/communities/{community_id}/download")
async def download_community(community_id: int, storage: Storage = Depends(get_storage)):
    """The generated community file as a plain-text attachment."""
    try:
        community = await storage.get_community(community_id)
    except PersistenceError:
        logger.exception("Error fetching community %s", community_id)
        return _error_response(500, "Failed to fetch community")
    if community is None:
        return _error_response(404, "Community not found")
    filename = report_filename(community.rename)
    return PlainTextResponse(
        community.generated_content,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------- Users ----------------

@router.post("/api/users")
async def create_user(payload: Any = Body(None), storage: Storage = Depends(get_storage)):
    """
    Sign up a user record.

    Payload:
        {"username": "...", "password": "..."}
    """
    try:
        data = validate_payload(CreateUserRequest, payload)
    except InputValidationError as exc:
        return _validation_response(exc.errors)

    try:
        user = await storage.create_user(UserCreate(username=data.username, password=data.password))
    except DuplicateUsername:
        logger.info("Signup rejected, username %r already exists", data.username)
        return _error_response(409, "Username already exists")
    except PersistenceError:
        logger.exception("Failed to create user %r", data.username)
        return _error_response(500, "Failed to create user")

    return JSONResponse(
        {"success": True, "userId": user.id, "username": user.username},
        status_code=201,
    )


@router.get("/api/users/{user_id}", response_model=UserPublic)
async def get_user(user_id: int, storage: Storage = Depends(get_storage)):
    try:
        user = await storage.get_user(user_id)
    except PersistenceError:
        logger.exception("Error fetching user %s", user_id)
        return _error_response(500, "Failed to fetch user")
    if user is None:
        return _error_response(404, "User not found")
    return UserPublic(id=user.id, username=user.username)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed JSON and bad path parameters share the validation envelope
    return _validation_response(field_errors(exc.errors()))


def create_app(
    storage: Optional[Storage] = None,
    notifier: Optional[DiscordNotifier] = None,
) -> FastAPI:
    """
    Build the application. The store and notifier are created here once and
    handed to the routes through ``app.state``; pass your own to isolate tests.
    """
    app = FastAPI(title="Community File Generator")
    app.state.storage = storage if storage is not None else build_storage()
    app.state.notifier = notifier if notifier is not None else DiscordNotifier(
        default_url=DISCORD_WEBHOOK_URL,
        required=WEBHOOK_REQUIRED,
    )
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.include_router(router)
    logger.debug("Application created with %s", type(app.state.storage).__name__)
    return app


app = create_app()
