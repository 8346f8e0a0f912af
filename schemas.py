"""
Request and record schemas.

Incoming JSON uses camelCase keys (``robuxFund``, ``textContent`` ...) while the
Python side works with snake_case attributes; the alias generator bridges the two.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from config import DISCORD_WEBHOOK_HOSTS, DISCORD_WEBHOOK_PATH
from errors import InputValidationError

M = TypeVar("M", bound=BaseModel)

REQUIRED_MESSAGES = {
    "rename": "Rename is required",
    "robux_fund": "Robux Fund is required",
    "communities_member": "Communities Member is required",
    "owner_username": "Owner Username is required",
    "text_content": "Communities text content is required",
    "username": "Username is required",
    "password": "Password is required",
}

_http_url = TypeAdapter(HttpUrl)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require_text(value: Any, info: ValidationInfo) -> Any:
    if _is_blank(value):
        raise PydanticCustomError("required", REQUIRED_MESSAGES[info.field_name])
    return value


def is_discord_webhook(url: HttpUrl) -> bool:
    host = (url.host or "").lower()
    host_ok = any(host == allowed or host.endswith("." + allowed) for allowed in DISCORD_WEBHOOK_HOSTS)
    return host_ok and (url.path or "").startswith(DISCORD_WEBHOOK_PATH)


class CreateCommunityRequest(BaseModel):
    """
    Body of ``POST /api/communities``.

    Two client generations exist: one sends ``robuxFund`` + ``textContent``,
    the other ``robloxFriend`` + ``fileContent`` + ``fileName``. Both are folded
    into the same fields before validation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
    )

    rename: str = ""
    robux_fund: str = ""
    communities_member: str = ""
    owner_username: str = ""
    text_content: str = ""
    file_name: Optional[str] = None
    discord_webhook: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def fold_client_variants(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "robuxFund" not in data and "robloxFriend" in data:
            data["robuxFund"] = data.pop("robloxFriend")
        if "textContent" not in data and "fileContent" in data:
            data["textContent"] = data.pop("fileContent")
            # uploaded content must say where it came from
            data.setdefault("fileName", "")
        return data

    @field_validator(
        "rename",
        "robux_fund",
        "communities_member",
        "owner_username",
        "text_content",
        mode="before",
    )
    @classmethod
    def check_required(cls, value: Any, info: ValidationInfo) -> Any:
        return _require_text(value, info)

    @field_validator("file_name", mode="before")
    @classmethod
    def check_file_name(cls, value: Any) -> Any:
        if value is not None and _is_blank(value):
            raise PydanticCustomError("required", "File name is required")
        return value

    @field_validator("discord_webhook", mode="before")
    @classmethod
    def check_webhook(cls, value: Any) -> Optional[str]:
        if _is_blank(value):
            return None
        if not isinstance(value, str):
            raise PydanticCustomError("url", "Invalid webhook URL")
        value = value.strip()
        try:
            url = _http_url.validate_python(value)
        except ValidationError:
            raise PydanticCustomError("url", "Invalid webhook URL") from None
        if not is_discord_webhook(url):
            raise PydanticCustomError("webhook", "Must be a valid Discord webhook URL")
        return value


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(validate_default=True)

    username: str = ""
    password: str = ""

    @field_validator("username", "password", mode="before")
    @classmethod
    def check_required(cls, value: Any, info: ValidationInfo) -> Any:
        return _require_text(value, info)


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserCreate(_Record):
    username: str
    password: str


class UserRecord(UserCreate):
    id: int


class UserPublic(_Record):
    id: int
    username: str


class CommunityCreate(_Record):
    rename: str
    robux_fund: str
    communities_member: str
    owner_username: str
    original_content: str
    generated_content: str
    original_file_name: Optional[str] = None
    discord_webhook: Optional[str] = None


class CommunityRecord(CommunityCreate):
    id: int
    created_at: datetime


class CommunityPublic(_Record):
    """A stored community as served over HTTP; the webhook URL carries a token and stays server-side."""

    id: int
    rename: str
    robux_fund: str
    communities_member: str
    owner_username: str
    original_content: str
    generated_content: str
    original_file_name: Optional[str] = None
    created_at: datetime


def _wire_name(model: Optional[Type[BaseModel]], part: str) -> str:
    # defaulted fields are reported under the attribute name, not the alias
    field = model.model_fields.get(part) if model is not None else None
    if field is not None and field.alias:
        return field.alias
    return part


def field_errors(
    errors: Iterable[Dict[str, Any]],
    model: Optional[Type[BaseModel]] = None,
) -> List[Dict[str, str]]:
    """Flatten pydantic/FastAPI error dicts into [{"field", "message"}] entries."""
    collected = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        if loc:
            loc[0] = _wire_name(model, loc[0])
        collected.append({
            "field": ".".join(loc) or "body",
            "message": error.get("msg", "Invalid value"),
        })
    return collected


def validate_payload(model: Type[M], payload: Any) -> M:
    """
    Validate a decoded JSON body against ``model``.

    Either returns a fully validated instance or raises
    InputValidationError listing every failing field at once.
    """
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise InputValidationError(field_errors(exc.errors(), model)) from None
