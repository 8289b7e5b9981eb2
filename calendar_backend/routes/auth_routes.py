import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import AliasChoices, BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from calendar_backend.auth import jwt_handler
from calendar_backend.auth.dependencies import get_current_user
from calendar_backend.auth.passwords import MAX_PASSWORD_BYTES, hash_password, password_too_long, verify_password
from calendar_backend.database import get_db
from calendar_backend.models.user import User

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)


class _Credentials(BaseModel):
    email: str | None = None
    password: str | None = None

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().lower() or None


class RegisterRequest(_Credentials):
    first_name: str | None = Field(default=None, validation_alias=AliasChoices('first_name', 'nome'))
    last_name: str | None = Field(default=None, validation_alias=AliasChoices('last_name', 'cognome'))

    @field_validator('first_name', 'last_name')
    @classmethod
    def strip_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class LoginRequest(_Credentials):
    pass


class UserResponse(BaseModel):
    id: int
    email: str
    name: str | None = None
    role: str | None = None

    class Config:
        from_attributes = True


@router.post('/register', response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    if not (data.first_name and data.last_name and data.email and data.password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='All fields are required.')

    if password_too_long(data.password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Password must be at most {MAX_PASSWORD_BYTES} bytes.',
        )

    if db.query(User).filter(User.email == data.email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail='User already registered.')

    user = User(
        email=data.email,
        name=f'{data.first_name} {data.last_name}',
        hashed_password=hash_password(data.password),
    )

    try:
        db.add(user)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail='User already registered.') from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to register %s', data.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Could not complete registration.',
        ) from exc

    db.refresh(user)
    return user


@router.post('/login')
def login(data: LoginRequest, db: Session = Depends(get_db)):
    if not (data.email and data.password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Email and password are required.')

    user = db.query(User).filter(User.email == data.email).first()
    if user is None or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid credentials.')

    token = jwt_handler.create_access_token(subject=user.email, role=user.role)
    return {'access_token': token, 'token_type': 'bearer'}


@router.get('/me', response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
