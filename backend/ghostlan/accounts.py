from passlib.context import CryptContext
from .schemas import ChangePasswordIn, ChangePasswordOut, LoginIn, LoginOut
from .store import ChatStore

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


async def login(store: ChatStore, payload: LoginIn) -> LoginOut:
    hashed = await store.get_password_hash(payload.id)
    if not hashed or not verify_password(payload.password, hashed):
        return LoginOut(success=False, message="Invalid Credentials")
    user = await store.get_user(payload.id)
    return LoginOut(success=True, **user)


async def change_password(store: ChatStore, payload: ChangePasswordIn) -> ChangePasswordOut:
    hashed = await store.get_password_hash(payload.employee_id)
    if not hashed or not verify_password(payload.old_password, hashed):
        return ChangePasswordOut(success=False, message="Incorrect Old Password")
    await store.set_password_hash(payload.employee_id, get_password_hash(payload.new_password))
    return ChangePasswordOut(success=True)
