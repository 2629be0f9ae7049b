from passlib.context import CryptContext

from ...application.ports.password_hasher import PasswordHasher


class PasslibPasswordHasher(PasswordHasher):
    def __init__(self, rounds: int = 10):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        return self._context.verify(password, password_hash)

    def dummy_verify(self) -> None:
        self._context.dummy_verify()
