"""
Credential cipher for snapshot credentials.

Credentials travel in one of two shapes: a plaintext mapping of node id to
secret values, or an encrypted blob in the Node-RED wire form
``{"$": "<32 hex chars of IV><base64 ciphertext>"}``. The blob is AES-256-CTR
with ``key = sha256(secret)``, so a Node-RED runtime given the same
``credentialSecret`` can read it.

The IV is derived from the key and the canonical plaintext instead of being
random, which makes :meth:`CredentialCipher.reencrypt` deterministic.
"""

import base64
import binascii
import hashlib
import hmac
import json
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from snapline.exceptions.domain import CredentialDecryptionError

ENCRYPTED_MARKER = "$"
IV_HEX_LENGTH = 32


@dataclass(frozen=True)
class PlaintextCredentials:
    """Decrypted credentials keyed by node id."""

    values: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EncryptedCredentials:
    """Opaque encrypted credential blob."""

    blob: str


Credentials: TypeAlias = PlaintextCredentials | EncryptedCredentials


def parse_credentials(raw: dict[str, Any] | None) -> Credentials:
    """Classify a raw credentials mapping as plaintext or encrypted."""
    if not raw:
        return PlaintextCredentials()
    blob = raw.get(ENCRYPTED_MARKER)
    if isinstance(blob, str) and len(raw) == 1:
        return EncryptedCredentials(blob)
    return PlaintextCredentials(dict(raw))


def to_json(credentials: Credentials) -> dict[str, Any]:
    """Wire form of credentials as stored in snapshot flows."""
    match credentials:
        case EncryptedCredentials(blob=blob):
            return {ENCRYPTED_MARKER: blob}
        case PlaintextCredentials(values=values):
            return dict(values)


def _derive_key(secret: str) -> bytes:
    return hashlib.sha256(secret.encode("utf-8")).digest()


class CredentialCipher:
    """Encrypts, decrypts and re-keys credential blobs.

    All operations are pure. Decrypting with the wrong secret raises
    :class:`CredentialDecryptionError` instead of returning garbage.
    """

    def encrypt(self, values: dict[str, Any], secret: str) -> EncryptedCredentials:
        """Encrypt plaintext credential values under ``secret``."""
        key = _derive_key(secret)
        plaintext = json.dumps(values, sort_keys=True, separators=(",", ":")).encode("utf-8")
        iv = hmac.new(key, plaintext, hashlib.sha256).digest()[:16]

        encryptor = Cipher(algorithms.AES(key), modes.CTR(iv)).encryptor()
        ciphertext = encryptor.update(plaintext) + encryptor.finalize()
        return EncryptedCredentials(iv.hex() + base64.b64encode(ciphertext).decode("ascii"))

    def decrypt(self, credentials: EncryptedCredentials, secret: str) -> PlaintextCredentials:
        """Decrypt a blob with ``secret``.

        Raises:
            CredentialDecryptionError: If the blob is malformed or the secret is wrong
        """
        blob = credentials.blob
        try:
            iv = bytes.fromhex(blob[:IV_HEX_LENGTH])
            ciphertext = base64.b64decode(blob[IV_HEX_LENGTH:], validate=True)
        except (ValueError, binascii.Error) as e:
            raise CredentialDecryptionError("Malformed credentials blob") from e
        if len(iv) != 16:
            raise CredentialDecryptionError("Malformed credentials blob")

        decryptor = Cipher(algorithms.AES(_derive_key(secret)), modes.CTR(iv)).decryptor()
        plaintext = decryptor.update(ciphertext) + decryptor.finalize()
        try:
            values = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CredentialDecryptionError() from e
        if not isinstance(values, dict):
            raise CredentialDecryptionError()
        return PlaintextCredentials(values)

    def reencrypt(
        self, credentials: Credentials, from_secret: str | None, to_secret: str
    ) -> EncryptedCredentials:
        """Re-key credentials for ``to_secret``.

        Plaintext credentials are encrypted directly. Encrypted ones require
        ``from_secret``; plaintext never leaves this method.
        """
        match credentials:
            case PlaintextCredentials(values=values):
                return self.encrypt(values, to_secret)
            case EncryptedCredentials():
                if from_secret is None:
                    raise CredentialDecryptionError("No secret available to decrypt credentials")
                return self.encrypt(self.decrypt(credentials, from_secret).values, to_secret)


credential_cipher = CredentialCipher()
