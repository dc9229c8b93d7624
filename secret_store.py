"""Secret storage for the OAuth client registration and the cached token.

Secrets live in the system keyring by default. MemoryStore keeps them in a
dict for tests and dry runs.
"""

import json
import logging
import sys

import keyring
import keyring.errors
from google_auth_oauthlib.flow import InstalledAppFlow

from ooo_errors import AuthError, AuthErrorKind, ConfigError, SecretStoreError
from ooo_settings import SCOPES, SECRET_NAMES, SecretNames
from ooo_threads import run_detached

logger = logging.getLogger(__name__)

SETUP_INSTRUCTIONS = """\
First time setup. Please provide your Google OAuth client secret:
1. Go to https://console.cloud.google.com
2. Create a new project or select an existing one
3. Enable the Google Calendar API
4. Go to Credentials and create an OAuth 2.0 Client ID of type "Desktop app"
5. Download the client secret JSON file

Paste the contents of your client_secret.json file (on one line) and press Enter:"""


class KeyringStore:
    """Secrets in the OS keyring (Keychain, Secret Service, Credential Locker)."""

    def get(self, service: str, key: str) -> str | None:
        try:
            return keyring.get_password(service, key)
        except keyring.errors.KeyringError as e:
            raise SecretStoreError(f"unable to read {key!r} from keyring: {e}") from e

    def set(self, service: str, key: str, secret: str) -> None:
        try:
            keyring.set_password(service, key, secret)
        except keyring.errors.KeyringError as e:
            raise SecretStoreError(f"unable to store {key!r} in keyring: {e}") from e

    def delete(self, service: str, key: str) -> bool:
        """Remove a secret. Returns False when there was nothing to remove."""
        try:
            keyring.delete_password(service, key)
        except keyring.errors.PasswordDeleteError:
            return False
        except keyring.errors.KeyringError as e:
            raise SecretStoreError(f"unable to delete {key!r} from keyring: {e}") from e
        return True


class MemoryStore:
    """Dict-backed store with the same interface as KeyringStore."""

    def __init__(self, secrets: dict | None = None):
        self.secrets = dict(secrets or {})

    def get(self, service: str, key: str) -> str | None:
        return self.secrets.get((service, key))

    def set(self, service: str, key: str, secret: str) -> None:
        self.secrets[(service, key)] = secret

    def delete(self, service: str, key: str) -> bool:
        return self.secrets.pop((service, key), None) is not None


def parse_client_config(secret: str) -> dict:
    """Parse and validate a client_secret.json blob.

    Raises ConfigError unless the blob is JSON describing an installed or web
    OAuth client.
    """
    try:
        client_config = json.loads(secret)
    except json.JSONDecodeError as e:
        raise ConfigError(
            f"invalid JSON format: {e}\n"
            "Please make sure you're pasting the entire client_secret.json file"
        ) from e

    if not isinstance(client_config, dict):
        raise ConfigError("invalid client secret format: expected a JSON object")

    try:
        InstalledAppFlow.from_client_config(client_config, scopes=SCOPES)
    except (ValueError, KeyError) as e:
        raise ConfigError(
            f"invalid client secret format: {e}\n"
            "Please make sure you're using the correct client_secret.json file"
        ) from e
    return client_config


async def read_stdin_line() -> str | None:
    """Read one line from stdin without blocking the event loop.

    A cancelled run can exit while the reader is still parked on stdin.
    Returns None on EOF.
    """
    line = await run_detached(sys.stdin.readline, name="stdin-reader")
    return line.strip() if line else None


async def load_client_config(store, names: SecretNames = SECRET_NAMES, read_line=read_stdin_line) -> dict:
    """Return the stored OAuth client registration, prompting for it on first run.

    Args:
        store: Secret store (KeyringStore or MemoryStore)
        names: Service and key names used in the store
        read_line: Coroutine function returning one line of user input or None on EOF
    """
    try:
        secret = store.get(names.service, names.client_secret_key)
    except SecretStoreError as e:
        raise ConfigError(str(e)) from e

    if secret is not None:
        try:
            return parse_client_config(secret)
        except ConfigError as e:
            raise ConfigError(f"unable to parse stored client secret ({e}); run with --reset-secret") from e

    print(SETUP_INSTRUCTIONS)
    line = await read_line()
    if not line:
        raise AuthError(AuthErrorKind.CANCELLED, "no client secret provided")

    client_config = parse_client_config(line)
    try:
        store.set(names.service, names.client_secret_key, line)
    except SecretStoreError as e:
        raise ConfigError(f"failed to store client secret: {e}") from e
    logger.info("stored client secret under %s", names.service)
    return client_config


def reset_token(store, names: SecretNames = SECRET_NAMES) -> bool:
    """Forget the cached OAuth token. Returns False if none was stored."""
    removed = store.delete(names.service, names.token_key)
    if removed:
        print("OAuth token has been reset.")
    else:
        print("No stored OAuth token to reset.")
    return removed


def reset_client_secret(store, names: SecretNames = SECRET_NAMES) -> bool:
    """Forget the client registration, and with it the token it issued."""
    removed = store.delete(names.service, names.client_secret_key)
    if removed:
        print("Client secret has been reset.")
    else:
        print("No stored client secret to reset.")
    reset_token(store, names)
    return removed
