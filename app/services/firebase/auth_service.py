"""Authentication backends: Firebase Auth in production, signed JWTs locally."""

import uuid
from typing import Dict, Optional

import httpx

from app.core.security import create_access_token, decode_token, hash_secret, verify_secret
from app.utils.exceptions import AuthenticationError, ConflictError, ExternalServiceError
from app.utils.logger import get_logger

logger = get_logger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"

_firebase_app = None


def init_firebase_app(credentials_path: Optional[str] = None, storage_bucket: Optional[str] = None):
    """Initialize the Firebase Admin SDK once per process.

    Args:
        credentials_path: Path to the service-account JSON file. Falls back to
            application default credentials when empty.
        storage_bucket: Default bucket for ``firebase_admin.storage``.

    Returns:
        The initialized ``firebase_admin.App``.
    """
    global _firebase_app
    if _firebase_app is not None:
        return _firebase_app

    import firebase_admin
    from firebase_admin import credentials

    options = {"storageBucket": storage_bucket} if storage_bucket else None
    if firebase_admin._apps:
        _firebase_app = firebase_admin.get_app()
    elif credentials_path:
        cred = credentials.Certificate(credentials_path)
        _firebase_app = firebase_admin.initialize_app(cred, options)
        logger.info(f"Firebase initialized with credentials: {credentials_path}")
    else:
        _firebase_app = firebase_admin.initialize_app(options=options)
        logger.info("Firebase initialized with default credentials")
    return _firebase_app


def to_login_email(identifier: str, domain: str) -> str:
    """Map a login id onto a synthetic email; real emails pass through."""
    identifier = identifier.strip()
    if "@" in identifier:
        return identifier.lower()
    return f"{identifier.lower()}@{domain}"


class FirebaseAuthService:
    """Firebase Auth backed sign-up, sign-in and token verification."""

    def __init__(
        self,
        web_api_key: str,
        credentials_path: Optional[str] = None,
        storage_bucket: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        from firebase_admin import auth

        init_firebase_app(credentials_path, storage_bucket)
        self._auth = auth
        self._web_api_key = web_api_key
        self._transport = transport

    async def _sign_in_with_password(self, email: str, password: str) -> Dict[str, str]:
        if not self._web_api_key:
            raise ExternalServiceError("FIREBASE_WEB_API_KEY is not configured")

        url = f"{IDENTITY_TOOLKIT_URL}/accounts:signInWithPassword"
        async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
            resp = await client.post(
                url,
                params={"key": self._web_api_key},
                json={"email": email, "password": password, "returnSecureToken": True},
            )

        if resp.status_code == 400:
            reason = resp.json().get("error", {}).get("message", "INVALID_LOGIN_CREDENTIALS")
            logger.warning(f"Firebase sign-in rejected for {email}: {reason}")
            raise AuthenticationError("Invalid credentials", details={"reason": reason})
        if resp.status_code >= 300:
            logger.error(f"Identity Toolkit error {resp.status_code}: {resp.text}")
            raise ExternalServiceError("Sign-in service unavailable")

        data = resp.json()
        return {"uid": data["localId"], "email": data.get("email", email), "token": data["idToken"]}

    async def sign_up(self, email: str, password: str, name: str) -> Dict[str, str]:
        """Create a Firebase user and sign it in."""
        try:
            user = self._auth.create_user(email=email, password=password, display_name=name)
        except self._auth.EmailAlreadyExistsError as e:
            raise ConflictError("Email already in use") from e
        logger.info(f"Firebase user created: {user.uid}")
        result = await self._sign_in_with_password(email, password)
        return {**result, "uid": user.uid}

    async def sign_in(self, email: str, password: str) -> Dict[str, str]:
        return await self._sign_in_with_password(email, password)

    async def verify_token(self, token: str) -> Dict[str, str]:
        try:
            decoded = self._auth.verify_id_token(token, check_revoked=True)
        except Exception as e:
            logger.error(f"Firebase token verification failed: {e}")
            raise AuthenticationError("Invalid or expired token") from e
        return {"uid": decoded["uid"], "email": decoded.get("email", "")}

    async def sign_out(self, uid: str, token: str) -> None:
        self._auth.revoke_refresh_tokens(uid)
        logger.info(f"Refresh tokens revoked for {uid}")


class LocalAuthService:
    """Dev-mode accounts stored in the local document store.

    Passwords are PBKDF2 hashed; tokens are signed JWTs whose ``jti`` is
    recorded on sign-out so they stop verifying.
    """

    ACCOUNTS = "auth_accounts"
    REVOKED = "auth_revoked_tokens"

    def __init__(self, db) -> None:
        self.db = db

    def _find_account(self, email: str) -> Optional[dict]:
        docs = self.db.collection(self.ACCOUNTS).where("email", "==", email).limit(1).get()
        return docs[0].to_dict() if docs else None

    def _issue(self, uid: str, email: str) -> Dict[str, str]:
        return {"uid": uid, "email": email, "token": create_access_token({"uid": uid, "email": email})}

    async def sign_up(self, email: str, password: str, name: str) -> Dict[str, str]:
        if self._find_account(email):
            raise ConflictError("Email already in use")
        uid = uuid.uuid4().hex[:28]
        self.db.collection(self.ACCOUNTS).document(uid).set({
            "uid": uid,
            "email": email,
            "displayName": name,
            "passwordHash": hash_secret(password),
        })
        logger.info(f"Local account created: {email} (uid: {uid})")
        return self._issue(uid, email)

    async def sign_in(self, email: str, password: str) -> Dict[str, str]:
        account = self._find_account(email)
        if not account or not verify_secret(password, account.get("passwordHash")):
            logger.warning(f"Failed login attempt for: {email}")
            raise AuthenticationError("Invalid credentials")
        return self._issue(account["uid"], email)

    async def verify_token(self, token: str) -> Dict[str, str]:
        try:
            claims = decode_token(token)
        except ValueError as e:
            raise AuthenticationError("Invalid or expired token") from e
        if self.db.collection(self.REVOKED).document(claims.get("jti", "")).get().exists:
            raise AuthenticationError("Token has been revoked")
        return {"uid": claims["uid"], "email": claims.get("email", "")}

    async def sign_out(self, uid: str, token: str) -> None:
        claims = decode_token(token)
        self.db.collection(self.REVOKED).document(claims["jti"]).set({"uid": uid, "exp": claims.get("exp")})
        logger.info(f"Local token revoked for {uid}")
