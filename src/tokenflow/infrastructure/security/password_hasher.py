# Passlib's bcrypt handler reads bcrypt.__about__.__version__, which newer
# bcrypt releases no longer ship. Provide it before passlib is imported.
import bcrypt as _bcrypt  # isort: skip
from types import SimpleNamespace  # isort: skip

if not hasattr(_bcrypt, "__about__"):
    _bcrypt.__about__ = SimpleNamespace(__version__=getattr(_bcrypt, "__version__", "4.0.1"))  # type: ignore[attr-defined]

from passlib.context import CryptContext  # isort: skip

DEFAULT_SCHEMES = ["pbkdf2_sha256", "bcrypt"]


class PasslibPasswordHasher:
    """Hashes with the first scheme; still verifies legacy bcrypt digests."""

    def __init__(self, schemes: list[str] | None = None):
        self.context = CryptContext(schemes=schemes or DEFAULT_SCHEMES, deprecated="auto")

    def hash(self, plaintext: str) -> str:
        return self.context.hash(plaintext)

    def verify(self, plaintext: str, digest: str) -> bool:
        return bool(self.context.verify(plaintext, digest))
