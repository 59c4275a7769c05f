from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime

from app.core.database import get_db
from app.core.logging_config import logger, set_admin_id
from app.core.rate_limiter import limiter, get_client_ip
from app.core.security import verify_password, create_access_token, access_token_lifetime
from app.models.admin_user import AdminUser
from app.modules.auth.dependencies import get_current_admin
from app.schemas.auth import AdminLogin, AdminResponse, LoginResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=LoginResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    credentials: AdminLogin,
    db: AsyncSession = Depends(get_db)
):
    """Admin login (rate limited: 5/min)"""
    client_ip = get_client_ip(request)
    email = credentials.email.lower()

    result = await db.execute(
        select(AdminUser).where(AdminUser.email == email)
    )
    admin = result.scalar_one_or_none()

    if not admin or not verify_password(credentials.password, admin.hashed_password):
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=email,
            reason="Invalid credentials",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    if not admin.is_active:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=email,
            reason="Account inactive",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    admin.last_login_at = datetime.utcnow()
    await db.commit()

    set_admin_id(str(admin.id))

    access_token = create_access_token({
        "sub": str(admin.id),
        "email": admin.email,
        "role": admin.role.value
    })

    logger.log_auth_event(
        event="login",
        success=True,
        user_email=admin.email,
        client_ip=client_ip,
        admin_role=admin.role.value
    )

    return LoginResponse(
        access_token=access_token,
        expires_in=int(access_token_lifetime().total_seconds()),
        admin=AdminResponse.model_validate(admin)
    )


@router.get("/me", response_model=AdminResponse)
async def get_me(admin: AdminUser = Depends(get_current_admin)):
    """Currently authenticated admin"""
    return admin
