import datetime
import logging
from typing import Annotated, List

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from mastersapi.config import config
from mastersapi.database import database, user_table, user_role_table, role_table
from mastersapi.models.user import User
logging.getLogger('passlib').setLevel(logging.ERROR)
logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ADMIN_ROLES = ["Super Administrator", "Administrator"]
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/user/token")
pwd_context = CryptContext(schemes=["bcrypt"])


def create_unauthorized_exception(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def access_token_expire_minutes() -> int:
    return config.ACCESS_TOKEN_EXPIRE_MINUTES


def create_access_token(email: str):
    logger.debug("Creating access token", extra={"email": email})
    expire = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
        minutes=access_token_expire_minutes()
    )
    jwt_data = {"sub": email, "exp": expire, "type": "access"}
    encoded_jwt = jwt.encode(jwt_data, key=config.SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def get_subject_for_token(token: str) -> str:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError as e:
        raise create_unauthorized_exception("Token has expired") from e
    except JWTError as e:
        raise create_unauthorized_exception("Invalid token") from e

    email = payload.get("sub")
    if email is None:
        raise create_unauthorized_exception("Token is missing 'sub' field")

    if payload.get("type") != "access":
        raise create_unauthorized_exception("Token has incorrect type, expected 'access'")

    return email


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


async def get_user_roles(user_id: int) -> List[str]:
    query = (
        role_table.select()
        .select_from(role_table.join(user_role_table, role_table.c.id == user_role_table.c.role_id))
        .where(user_role_table.c.user_id == user_id)
        .order_by(role_table.c.name)
    )
    rows = await database.fetch_all(query)
    return [row.name for row in rows]


async def get_user(email: str):
    query = user_table.select().where(user_table.c.email == email)
    return await database.fetch_one(query)


async def authenticate_user(email: str, password: str) -> User:
    logger.debug("Authenticating user", extra={"email": email})
    row = await get_user(email)
    if not row:
        raise create_unauthorized_exception("Invalid email or password")
    if not verify_password(password, row.password_hash):
        raise create_unauthorized_exception("Invalid email or password")
    if not row.confirmed:
        raise create_unauthorized_exception("User has not confirmed email")
    return await _to_user(row)


async def _to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        username=row.username,
        company_id=row.company_id,
        confirmed=bool(row.confirmed),
        roles=await get_user_roles(row.id),
    )


async def get_current_user(token: Annotated[str, Depends(oauth2_scheme)]) -> User:
    email = get_subject_for_token(token)
    row = await get_user(email=email)
    if row is None:
        raise create_unauthorized_exception("Could not find user for this token")
    return await _to_user(row)


def require_roles(allowed_roles: List[str]):
    async def check_roles(current_user: Annotated[User, Depends(get_current_user)]):
        user_roles = current_user.roles if current_user.roles else []
        logger.debug(f"Current user roles: {user_roles}")
        if not any(role in allowed_roles for role in user_roles):
            raise HTTPException(
                status_code=403,
                detail="Insufficient permissions",
            )
        return current_user
    return check_roles
