"""
AES-256-GCM encryption for vault secrets.

The vault key is either derived from a password (PBKDF2-HMAC-SHA256 with a
random per-vault salt stored next to the vault) or, when no password is
configured, a 32-byte random key stored at <keyring_dir>/.vault-key (chmod 600).
Each secret gets a unique 12-byte nonce prepended to the ciphertext.
"""

from __future__ import annotations

import secrets
from pathlib import Path

from mailtrack.fsutil import atomic_write

KEY_FILE = ".vault-key"
SALT_FILE = ".vault-salt"
PBKDF2_ITERATIONS = 390_000

_cached_keys: dict[tuple[str, str], bytes] = {}


def init_master_key(keyring_dir: Path | str) -> Path:
    """Generate a new master key file. Returns the path. Idempotent — skips if exists."""
    key_path = Path(keyring_dir) / KEY_FILE
    if key_path.exists():
        return key_path
    atomic_write(key_path, secrets.token_bytes(32))
    return key_path


def _load_salt(keyring_dir: Path) -> bytes:
    salt_path = keyring_dir / SALT_FILE
    if not salt_path.exists():
        atomic_write(salt_path, secrets.token_bytes(16))
    return salt_path.read_bytes()


def derive_key(password: str, salt: bytes) -> bytes:
    """Derive a 32-byte key from a password."""
    from cryptography.hazmat.primitives import hashes
    from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def get_master_key(keyring_dir: Path | str, password: str = "") -> bytes:
    """Load (or create) the vault key for a keyring directory (cached after first read)."""
    keyring_dir = Path(keyring_dir)
    cache_key = (str(keyring_dir), password)
    if cache_key in _cached_keys:
        return _cached_keys[cache_key]

    if password:
        key = derive_key(password, _load_salt(keyring_dir))
    else:
        key = init_master_key(keyring_dir).read_bytes()
        if len(key) != 32:
            raise ValueError(f"Vault master key must be 32 bytes, got {len(key)}")
    _cached_keys[cache_key] = key
    return key


def reset_key_cache() -> None:
    """Clear the cached vault keys (for testing)."""
    _cached_keys.clear()


def encrypt(plaintext: str, master_key: bytes) -> bytes:
    """Encrypt plaintext with AES-256-GCM. Returns nonce (12 bytes) + ciphertext + tag (16 bytes)."""
    from cryptography.hazmat.primitives.ciphers.aead import AESGCM

    nonce = secrets.token_bytes(12)
    aesgcm = AESGCM(master_key)
    ciphertext = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
    return nonce + ciphertext


def decrypt(data: bytes, master_key: bytes) -> str:
    """Decrypt nonce + ciphertext + tag back to plaintext."""
    from cryptography.hazmat.primitives.ciphers.aead import AESGCM

    if len(data) < 28:  # 12 nonce + 16 tag minimum
        raise ValueError("Encrypted data too short")
    nonce = data[:12]
    ciphertext = data[12:]
    aesgcm = AESGCM(master_key)
    plaintext = aesgcm.decrypt(nonce, ciphertext, None)
    return plaintext.decode("utf-8")
