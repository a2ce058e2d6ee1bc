from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import EmailAlreadyExists, InvalidCredentials, NotFound
from ..models.models import User
from ..schemas.auth import (
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UpdateUserRequest,
    UserResponse,
    UserStatusUpdate,
)
from ..schemas.common import AccountStatus, Page, UserRole
from ..services.notifications import notify
from ..services.pagination import PageParams, paginate
from .security import (
    create_access_token,
    get_active_user,
    get_current_user,
    get_password_hash,
    require_roles,
    verify_password,
)


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])
admin_router = APIRouter(prefix="/admin", tags=["admin"])

USER_SORT_COLUMNS = {
    "id": User.id,
    "createdAt": User.created_at,
    "email": User.email,
    "lastName": User.last_name,
    "role": User.role,
    "accountStatus": User.account_status,
}


def _email_taken(db: Session, email: str, exclude_id: int = None) -> bool:
    q = db.query(User).filter(User.email == email.lower())
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    return q.first() is not None


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(req: RegisterRequest, db: Session = Depends(get_db)):
    if _email_taken(db, req.email):
        raise EmailAlreadyExists()
    user = User(
        first_name=req.first_name.strip(),
        last_name=req.last_name.strip(),
        email=req.email.lower(),
        mobile_number=req.mobile_number,
        password_hash=get_password_hash(req.password),
        role=req.role,
        account_status=AccountStatus.ACTIVE,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise EmailAlreadyExists()
    db.refresh(user)
    logger.info("user_registered", user_id=user.id, role=user.role.value)
    return user


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == req.email.strip().lower()).first()
    if not user or not verify_password(req.password, user.password_hash):
        raise InvalidCredentials()
    if user.account_status == AccountStatus.INACTIVE:
        raise InvalidCredentials()
    # Suspended users may still sign in; mutations are blocked per request
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    return TokenResponse(token=create_access_token(user))


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user


@router.put("/me", response_model=UserResponse)
def update_me(req: UpdateUserRequest, db: Session = Depends(get_db), user: User = Depends(get_active_user)):
    if _email_taken(db, req.email, exclude_id=user.id):
        raise EmailAlreadyExists("Email already in use")
    user.first_name = req.first_name.strip()
    user.last_name = req.last_name.strip()
    user.email = req.email.lower()
    user.mobile_number = req.mobile_number
    if req.password:
        user.password_hash = get_password_hash(req.password)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise EmailAlreadyExists("Email already in use")
    db.refresh(user)
    return user


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(db: Session = Depends(get_db), user: User = Depends(get_active_user)):
    # Soft delete: the account can no longer sign in
    user.account_status = AccountStatus.INACTIVE
    db.commit()
    logger.info("user_deactivated", user_id=user.id)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


@router.put("/{user_id}/status", response_model=UserResponse)
def update_user_status(
    user_id: int,
    req: UserStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles(UserRole.ADMIN)),
):
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    previous = user.account_status
    user.account_status = req.status
    db.commit()
    db.refresh(user)
    logger.info("user_status_changed", user_id=user.id, admin_id=admin.id, before=previous.value, after=req.status.value)
    if previous != req.status:
        notify(db, [user.id], f"Your account status is now {req.status.value}", event="account_status_changed")
    return user


@admin_router.get("/users", response_model=Page[UserResponse])
def list_users(
    params: PageParams = Depends(),
    db: Session = Depends(get_db),
    _=Depends(require_roles(UserRole.ADMIN, active=False)),
):
    return paginate(db.query(User), params, UserResponse, USER_SORT_COLUMNS, User.id)
