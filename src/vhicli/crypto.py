"""Age encryption for the password stored in the rc file."""

import base64
import binascii
from pathlib import Path

import pyrage

from .api.exceptions import ConfigError

AGE_PREFIX = "AGE:"
_IDENTITY_FILE = Path.home() / ".config" / "vhicli" / ".age-identity"


def _ensure_keypair() -> tuple[pyrage.x25519.Identity, pyrage.x25519.Recipient]:
    """Load or generate the local age keypair."""
    if _IDENTITY_FILE.exists():
        identity = _load_identity()
    else:
        _IDENTITY_FILE.parent.mkdir(parents=True, exist_ok=True)
        identity = pyrage.x25519.Identity.generate()
        _IDENTITY_FILE.write_text(str(identity))
        _IDENTITY_FILE.chmod(0o600)
    return identity, identity.to_public()


def _load_identity() -> pyrage.x25519.Identity:
    # A fresh key could never open an existing value, so never generate one here.
    if not _IDENTITY_FILE.exists():
        raise ConfigError(
            f"age identity {_IDENTITY_FILE} is missing; "
            "set the password again with 'vhicli config set password'"
        )
    return pyrage.x25519.Identity.from_str(_IDENTITY_FILE.read_text().strip())


def encrypt(value: str) -> str:
    """Encrypt a plaintext value. Returns an ``AGE:<base64>`` string."""
    if value.startswith(AGE_PREFIX):
        return value
    _, recipient = _ensure_keypair()
    encrypted = pyrage.encrypt(value.encode(), [recipient])
    return AGE_PREFIX + base64.b64encode(encrypted).decode()


def decrypt(value: str) -> str:
    """Decrypt an ``AGE:``-prefixed value. Plaintext is returned unchanged.

    Raises:
        ConfigError: If the identity is missing or the value cannot be decrypted
    """
    if not value.startswith(AGE_PREFIX):
        return value
    identity = _load_identity()
    try:
        raw = base64.b64decode(value[len(AGE_PREFIX):], validate=True)
        return pyrage.decrypt(raw, [identity]).decode()
    except (binascii.Error, pyrage.DecryptError, UnicodeDecodeError) as e:
        raise ConfigError(f"cannot decrypt value: {e}")
