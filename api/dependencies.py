"""API Dependencies - Authentication and role gates"""
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from domain.auth import User, UserInDB
from domain.enums import UserRole
from domain.exceptions import UnauthorizedError, ForbiddenError
from domain.value_objects import Actor
from infrastructure.security import decode_access_token, get_password_hash
from api.schemas import TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Mock database for users
# In production, this would be a database call
_fake_users_db = {
    "admin": {
        "username": "admin",
        "full_name": "Admin User",
        "email": "admin@example.com",
        "plain_password": "admin123",  # Will be hashed on first access
        "role": UserRole.ADMIN,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174000" # Fixed UUID for admin
    },
    "manager": {
        "username": "manager",
        "full_name": "Front Office Manager",
        "email": "manager@example.com",
        "plain_password": "manager123",
        "role": UserRole.MANAGER,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174001"
    },
    "reception": {
        "username": "reception",
        "full_name": "Front Desk",
        "email": "reception@example.com",
        "plain_password": "reception123",
        "role": UserRole.RECEPTIONIST,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174002"
    },
    "housekeeping": {
        "username": "housekeeping",
        "full_name": "Housekeeping Staff",
        "email": "housekeeping@example.com",
        "plain_password": "housekeeping123",
        "role": UserRole.HOUSEKEEPING,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174003"
    },
    "guest": {
        "username": "guest",
        "full_name": "Jane Guest",
        "email": "jane@example.com",
        "plain_password": "guest123",
        "role": UserRole.GUEST,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174004"
    },
    "guest2": {
        "username": "guest2",
        "full_name": "John Visitor",
        "email": "john@example.com",
        "plain_password": "guest123",
        "role": UserRole.GUEST,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174005"
    },
}

# Public alias used by the login route and the guest directory
fake_users_db = _fake_users_db

# Cache for hashed passwords
_password_hash_cache = {}

def _get_hashed_password(username: str) -> str:
    """Lazily hash passwords on first access"""
    if username not in _password_hash_cache:
        user = _fake_users_db.get(username)
        if user and "plain_password" in user:
            _password_hash_cache[username] = get_password_hash(user["plain_password"])
    return _password_hash_cache.get(username, "")

def get_user(db, username: str):
    if username in db:
        user_dict = db[username].copy()
        # Replace plain_password with hashed_password
        if "plain_password" in user_dict:
            user_dict["hashed_password"] = _get_hashed_password(username)
            del user_dict["plain_password"]
        return UserInDB(**user_dict)
    return None

async def get_current_user(token: str = Depends(oauth2_scheme)) -> UserInDB:
    try:
        payload = decode_access_token(token)
        username: str = payload.get("sub")
        if username is None:
            raise UnauthorizedError("Could not validate credentials")
        token_data = TokenData(username=username)
    except JWTError:
        raise UnauthorizedError("Could not validate credentials")

    user = get_user(_fake_users_db, username=token_data.username)
    if user is None:
        raise UnauthorizedError("Could not validate credentials")
    return user

async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if current_user.disabled:
        raise ForbiddenError("Inactive user")
    return current_user

async def get_current_actor(current_user: User = Depends(get_current_active_user)) -> Actor:
    """Authenticated principal handed to every core operation"""
    return current_user.as_actor()

def require_roles(*roles: UserRole):
    """Dependency factory: 403 unless the actor holds one of the roles"""
    allowed = frozenset(roles)

    async def _check(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            raise ForbiddenError(
                "Insufficient permissions",
                details={"required": sorted(r.value for r in allowed), "role": actor.role.value},
            )
        return actor

    return _check

# Common gates
require_managers = require_roles(UserRole.ADMIN, UserRole.MANAGER)
require_front_desk = require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.RECEPTIONIST)
require_staff = require_roles(
    UserRole.ADMIN, UserRole.MANAGER, UserRole.RECEPTIONIST, UserRole.HOUSEKEEPING
)
require_admin = require_roles(UserRole.ADMIN)
