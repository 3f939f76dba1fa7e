import secrets

from pwdlib import PasswordHash

# Initialize password hasher with Argon2
pwd_context = PasswordHash.recommended()

TOKEN_BYTES = 32  # 256 bits, 64 hex characters


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using Argon2."""
    return pwd_context.hash(password)


def generate_token() -> str:
    """Opaque bearer token from the OS CSPRNG."""
    return secrets.token_hex(TOKEN_BYTES)
