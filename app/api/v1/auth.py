"""Authentication endpoints for signup, login, logout and session state."""

from fastapi import APIRouter, Depends, status

from app.config import get_settings
from app.core.security import verify_secret
from app.crud.user import UserCRUD
from app.dependencies import get_auth_service, get_current_user, get_db_client, get_user_profile
from app.models.user import UserModel
from app.schemas.auth_schema import LoginRequest, PasscodeRequest, SignUpRequest
from app.schemas.responses import ApiResponse
from app.services.firebase.auth_service import to_login_email
from app.services.session import load_session_state
from app.utils.exceptions import PasscodeError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post("/signup", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    request: SignUpRequest,
    db_client=Depends(get_db_client),
    auth_service=Depends(get_auth_service),
    settings=Depends(get_settings),
) -> ApiResponse:
    """
    Create a new account and its profile document.

    A login id without ``@`` is turned into a synthetic email so the auth
    backend always receives an email address.

    Raises:
        ConflictError: If the email is already registered
    """
    email = to_login_email(request.email, settings.synthetic_email_domain)
    account = await auth_service.sign_up(email, request.password, request.name)

    user = UserModel(uid=account["uid"], email=email, name=request.name)
    UserCRUD(db_client).create_user(user)
    profile = UserCRUD(db_client).get_model(account["uid"])

    logger.info(f"New user signed up: {email} (uid: {account['uid']})")
    return ApiResponse.success_response(
        {"uid": account["uid"], "email": email, "token": account["token"], "user": profile.to_public()},
        "Signup successful",
    )


@router.post("/login", response_model=ApiResponse)
async def login(
    request: LoginRequest,
    db_client=Depends(get_db_client),
    auth_service=Depends(get_auth_service),
    settings=Depends(get_settings),
) -> ApiResponse:
    """
    Authenticate with email (or login id) and password.

    Raises:
        AuthenticationError: On bad credentials
    """
    email = to_login_email(request.email, settings.synthetic_email_domain)
    account = await auth_service.sign_in(email, request.password)

    users = UserCRUD(db_client)
    profile = users.get_model(account["uid"])
    if profile is None:
        # Accounts created outside the app have no profile yet.
        users.create_user(UserModel(uid=account["uid"], email=email, name=email.split("@")[0]))
        profile = users.get_model(account["uid"])

    logger.info(f"User logged in: {account['uid']}")
    return ApiResponse.success_response(
        {"uid": account["uid"], "email": email, "token": account["token"], "user": profile.to_public()},
        "Login successful",
    )


@router.post("/logout", response_model=ApiResponse)
async def logout(
    current_user: dict = Depends(get_current_user),
    db_client=Depends(get_db_client),
    auth_service=Depends(get_auth_service),
) -> ApiResponse:
    """Revoke the current token and forget its passcode unlock."""
    UserCRUD(db_client).forget_session(current_user["uid"], current_user["token"])
    await auth_service.sign_out(current_user["uid"], current_user["token"])
    return ApiResponse.success_response(None, "Logged out")


@router.get("/session", response_model=ApiResponse)
async def get_session(
    current_user: dict = Depends(get_current_user),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """User, partner and couple in one call, plus the ``loading``/``is_locked`` flags."""
    state = load_session_state(db_client, current_user["uid"], current_user["token"])
    return ApiResponse.success_response(state.to_dict())


@router.post("/unlock", response_model=ApiResponse)
async def unlock_session(
    request: PasscodeRequest,
    current_user: dict = Depends(get_current_user),
    profile: dict = Depends(get_user_profile),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """
    Unlock a passcode-protected session for the current token.

    Raises:
        ValidationError: If no passcode is set
        PasscodeError: If the passcode is wrong
    """
    if not profile.get("passcode"):
        raise ValidationError("No passcode is set")
    if not verify_secret(request.pin, profile["passcode"]):
        logger.warning(f"Wrong passcode for {current_user['uid']}")
        raise PasscodeError()

    UserCRUD(db_client).unlock_session(current_user["uid"], current_user["token"])
    return ApiResponse.success_response({"isLocked": False}, "Unlocked")
