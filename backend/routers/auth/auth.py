from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from config import get_db
from models import UserProfile
from utils.response_helpers import ApiResponse
from .schemas import (
    UserRegister,
    UserLogin,
    RefreshTokenRequest,
    AuthResponse,
    UserResponse,
    TokenResponse
)
from .helpers import auth_helpers
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

security = HTTPBearer()


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
):
    """Get current user from JWT token"""
    token_user = auth_helpers.verify_token(credentials.credentials)

    current_user = {
        "user_id": token_user.id,
        "email": token_user.email,
        "role": await auth_helpers.resolve_role(db, token_user)
    }

    request.state.current_user = current_user
    return current_user


@router.post("/register", response_model=ApiResponse[AuthResponse], status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    try:
        existing_user = await db.execute(
            select(UserProfile).where(UserProfile.username == user_data.username)
        )
        if existing_user.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username already taken"
            )

        auth_response = auth_helpers.supabase.auth.sign_up({
            "email": user_data.email,
            "password": user_data.password,
            "options": {
                "data": {
                    "username": user_data.username,
                    "first_name": user_data.first_name,
                    "last_name": user_data.last_name,
                    "role": "user"
                }
            }
        })

        if auth_response.user is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Failed to create user account"
            )

        db.add(UserProfile(
            user_id=str(auth_response.user.id),
            username=user_data.username,
            email=user_data.email,
            first_name=user_data.first_name,
            last_name=user_data.last_name
        ))
        await db.commit()
        logger.info(f"Registered user {auth_response.user.id} ({user_data.username})")

        if auth_response.session is None:
            return ApiResponse(data=AuthResponse(
                access_token="",
                refresh_token="",
                message="User created successfully. Please check your email to verify your account before logging in."
            ))

        return ApiResponse(data=AuthResponse(
            access_token=auth_response.session.access_token,
            refresh_token=auth_response.session.refresh_token
        ))

    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Registration failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Registration failed"
        )


@router.post("/login", response_model=ApiResponse[AuthResponse])
async def login(user_data: UserLogin):
    try:
        auth_response = auth_helpers.supabase.auth.sign_in_with_password({
            "email": user_data.email,
            "password": user_data.password
        })
    except Exception as e:
        logger.warning(f"Login failed for {user_data.email}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    if auth_response.user is None or auth_response.session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    return ApiResponse(data=AuthResponse(
        access_token=auth_response.session.access_token,
        refresh_token=auth_response.session.refresh_token
    ))


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
async def refresh_token(request_data: RefreshTokenRequest):
    session = await auth_helpers.refresh_token(request_data.refresh_token)

    return ApiResponse(data=TokenResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token
    ))


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_me(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Current principal merged with the stored profile, if any"""
    result = await db.execute(
        select(UserProfile).where(UserProfile.user_id == current_user["user_id"])
    )
    user_profile = result.scalar_one_or_none()

    user_data = UserResponse(
        user_id=current_user["user_id"],
        email=current_user["email"],
        role=current_user["role"]
    )
    if user_profile:
        user_data.username = user_profile.username
        user_data.first_name = user_profile.first_name
        user_data.last_name = user_profile.last_name
        user_data.created_at = user_profile.created_at

    return ApiResponse(data=user_data)
