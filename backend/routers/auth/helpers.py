from supabase import Client
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from config import get_supabase_client, get_supabase_admin_client, JWT_SECRET_KEY, JWT_ALGORITHM
from models import UserProfile
from typing import Optional
import jwt
import logging

logger = logging.getLogger(__name__)

VALID_ROLES = ("user", "seller", "admin")


class TokenUser:
    """Principal extracted from a verified access token"""

    def __init__(self, user_id: str, email: Optional[str], role: Optional[str], payload: dict):
        self.id = user_id
        self.email = email
        self.role = role
        self.payload = payload


class AuthHelpers:
    """Helper functions for authentication operations"""

    def __init__(self):
        self._supabase = None
        self._admin_client = None

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase_client()
        return self._supabase

    @property
    def admin_client(self) -> Client:
        if self._admin_client is None:
            self._admin_client = get_supabase_admin_client()
        return self._admin_client

    def verify_token(self, token: str) -> TokenUser:
        """
        Verify JWT token locally without calling Supabase API
        Returns the principal with the role carried in user_metadata
        """
        if not JWT_SECRET_KEY:
            logger.error("JWT_SECRET_KEY is not configured")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Authentication is not configured"
            )

        try:
            payload = jwt.decode(
                token,
                JWT_SECRET_KEY,
                algorithms=[JWT_ALGORITHM],
                options={
                    "verify_exp": True,
                    "verify_iat": True,
                    "verify_signature": True,
                    "verify_aud": False
                }
            )
        except jwt.ExpiredSignatureError:
            logger.warning("JWT token expired")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token expired"
            )
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid JWT token: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token"
            )

        user_id = payload.get("sub")
        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing user ID"
            )

        user_metadata = payload.get("user_metadata") or {}
        role = user_metadata.get("role")
        if role not in VALID_ROLES:
            role = None

        return TokenUser(str(user_id), payload.get("email"), role, payload)

    async def resolve_role(self, db: AsyncSession, token_user: TokenUser) -> str:
        """Role from the token, falling back to the stored profile, then 'user'"""
        if token_user.role:
            return token_user.role

        result = await db.execute(
            select(UserProfile.role).where(UserProfile.user_id == token_user.id)
        )
        stored_role = result.scalar_one_or_none()
        if stored_role:
            logger.info(f"User {token_user.id} role from database: {stored_role}")
            return stored_role

        logger.info(f"No role found for {token_user.id}, using default role: user")
        return "user"

    async def refresh_token(self, refresh_token: str):
        """Refresh access token using refresh token"""
        try:
            auth_response = self.supabase.auth.refresh_session(refresh_token)
        except Exception as e:
            logger.error(f"Token refresh error: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token"
            )

        if auth_response.session is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token"
            )

        return auth_response.session

    def sync_role_metadata(self, user_id: str, role: str) -> bool:
        """
        Push the role into Supabase user metadata so it shows up in the next
        token. Best effort: the database role is authoritative until then.
        """
        try:
            self.admin_client.auth.admin.update_user_by_id(
                user_id,
                {"user_metadata": {"role": role}}
            )
            logger.info(f"Updated Supabase user metadata for {user_id} with role: {role}")
            return True
        except Exception as supabase_error:
            logger.error(f"Failed to update Supabase metadata for {user_id}: {str(supabase_error)}")
            return False


auth_helpers = AuthHelpers()
