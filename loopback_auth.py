"""Loopback OAuth2 authorization-code flow.

Obtains a Google Calendar credential for a desktop user:

1. Reuse the token cached in the secret store while it is unexpired.
2. Otherwise bind a one-shot HTTP listener on 127.0.0.1 at an OS-assigned
   port, open the consent page in the browser with that port as the redirect
   target, and wait for the single callback carrying `state` and `code`.
3. Exchange the code for a token and cache it.

The listener only accepts a callback whose `state` matches the nonce minted
for that attempt, and it is shut down on every exit path.
"""

import asyncio
import json
import logging
import secrets
import threading
import webbrowser
import wsgiref.simple_server
from urllib.parse import parse_qs

import requests
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from ooo_errors import AuthError, AuthErrorKind, SecretStoreError
from ooo_settings import AUTH_TIMEOUT_SECONDS, LOOPBACK_HOST, SCOPES, SECRET_NAMES, SecretNames
from ooo_threads import run_detached

logger = logging.getLogger(__name__)

SUCCESS_PAGE = "Authorization successful! You can close this window."
FAILURE_PAGE = "Authorization failed: {reason}. You can close this window and try again."


def open_browser(url: str) -> bool:
    """Open url with the platform's default browser launcher."""
    try:
        return webbrowser.open(url, new=1, autoraise=True)
    except webbrowser.Error as e:
        logger.warning("unable to open browser: %s", e)
        return False


def _set_outcome(future: asyncio.Future, outcome) -> None:
    if future.done():
        return
    if isinstance(outcome, BaseException):
        future.set_exception(outcome)
    else:
        future.set_result(outcome)


class _QuietHandler(wsgiref.simple_server.WSGIRequestHandler):
    def log_message(self, format, *args):
        logger.debug("loopback request: " + format, *args)


class _CallbackApp:
    """WSGI app that settles the waiting flow from the first redirect it sees."""

    def __init__(self, state: str, loop: asyncio.AbstractEventLoop, future: asyncio.Future, path: str = "/"):
        self.state = state
        self.path = path
        self._loop = loop
        self._future = future
        self._handled = False

    def __call__(self, environ, start_response):
        if environ.get("PATH_INFO", "/") != self.path:
            return self._reply(start_response, "404 Not Found", "Not found.")
        if self._handled:
            return self._reply(start_response, "410 Gone", "This authorization attempt is already complete.")
        self._handled = True

        params = parse_qs(environ.get("QUERY_STRING", ""))
        state = params.get("state", [""])[0]
        if not secrets.compare_digest(state.encode(), self.state.encode()):
            self._settle(AuthError(AuthErrorKind.STATE_MISMATCH, "callback state does not match this attempt"))
            return self._reply(start_response, "400 Bad Request", FAILURE_PAGE.format(reason="invalid state parameter"))

        if "error" in params:
            error = params["error"][0]
            description = params.get("error_description", [""])[0]
            self._settle(AuthError(AuthErrorKind.NO_CODE, f"provider returned {error} {description}".strip()))
            return self._reply(start_response, "400 Bad Request", FAILURE_PAGE.format(reason=error))

        code = params.get("code", [""])[0]
        if not code:
            self._settle(AuthError(AuthErrorKind.NO_CODE, "callback carried no authorization code"))
            return self._reply(start_response, "400 Bad Request", FAILURE_PAGE.format(reason="no code received"))

        self._settle(code)
        return self._reply(start_response, "200 OK", SUCCESS_PAGE)

    def _settle(self, outcome):
        self._loop.call_soon_threadsafe(_set_outcome, self._future, outcome)

    @staticmethod
    def _reply(start_response, status: str, body: str):
        start_response(status, [("Content-Type", "text/plain; charset=utf-8")])
        return [body.encode("utf-8")]


class LoopbackResponder:
    """Single-use redirect listener bound to an ephemeral loopback port.

    Use as a context manager: entering starts the serving thread, leaving
    stops it and closes the socket. close() is idempotent.
    """

    def __init__(self, state: str, loop: asyncio.AbstractEventLoop, host: str = LOOPBACK_HOST):
        self.host = host
        self.future = loop.create_future()
        app = _CallbackApp(state, loop, self.future)
        # Port 0 lets the OS pick; the socket stays bound until close().
        self._server = wsgiref.simple_server.make_server(host, 0, app, handler_class=_QuietHandler)
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.1},
            name="oauth-loopback",
            daemon=True,
        )
        self._lock = threading.Lock()
        self._closed = False

    @property
    def port(self) -> int:
        return self._server.server_port

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self.port}/"

    def __enter__(self):
        self._thread.start()
        logger.debug("loopback responder listening on port %d", self.port)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        port = self.port
        # shutdown() waits for serve_forever, which only runs once the thread has started.
        if self._thread.is_alive():
            self._server.shutdown()
            self._thread.join(timeout=5)
        self._server.server_close()
        if not self.future.done():
            self.future.cancel()
        logger.debug("loopback responder on port %d closed", port)


class LoopbackAuthFlow:
    """Produces a valid credential from cache or from a fresh browser consent."""

    def __init__(
        self,
        store,
        client_config: dict,
        names: SecretNames = SECRET_NAMES,
        scopes: list[str] | None = None,
        open_browser=open_browser,
        timeout: float = AUTH_TIMEOUT_SECONDS,
        host: str = LOOPBACK_HOST,
    ):
        self.store = store
        self.client_config = client_config
        self.names = names
        self.scopes = scopes or SCOPES
        self.timeout = timeout
        self.host = host
        self._open_browser = open_browser

    def cached_credentials(self) -> Credentials | None:
        """Return the stored token if it parses and has not expired."""
        try:
            blob = self.store.get(self.names.service, self.names.token_key)
        except SecretStoreError as e:
            logger.warning("unable to read cached token: %s", e)
            return None
        if not blob:
            return None

        try:
            creds = Credentials.from_authorized_user_info(json.loads(blob), self.scopes)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("ignoring malformed cached token: %s", e)
            return None

        if creds.expiry is None or creds.expired:
            logger.info("cached token expired at %s", creds.expiry)
            return None
        return creds

    async def obtain_token(self) -> Credentials:
        creds = self.cached_credentials()
        if creds is not None:
            logger.info("using cached token valid until %s", creds.expiry)
            return creds

        creds = await self.authorize()
        try:
            self.store.set(self.names.service, self.names.token_key, creds.to_json())
        except SecretStoreError as e:
            raise AuthError(AuthErrorKind.STORE_FAILED, str(e)) from e
        print("Token received successfully!")
        return creds

    async def authorize(self) -> Credentials:
        """Run one browser consent round-trip and exchange the returned code."""
        state = secrets.token_urlsafe(32)
        flow = InstalledAppFlow.from_client_config(self.client_config, scopes=self.scopes)
        loop = asyncio.get_running_loop()

        try:
            responder = LoopbackResponder(state, loop, self.host)
        except OSError as e:
            raise AuthError(AuthErrorKind.NO_CODE, f"unable to bind loopback listener: {e}") from e

        with responder:
            flow.redirect_uri = responder.redirect_uri
            auth_url, _ = flow.authorization_url(state=state, access_type="offline", prompt="consent")

            print("Opening browser for authorization...")
            if not self._open_browser(auth_url):
                print("Unable to open a browser automatically.")
            print(f"If nothing opened, visit this URL to authorize access:\n{auth_url}\n")

            try:
                code = await asyncio.wait_for(responder.future, self.timeout)
            except TimeoutError as e:
                raise AuthError(
                    AuthErrorKind.CANCELLED, f"no authorization callback within {self.timeout:g}s"
                ) from e

        print("Authorization code received, exchanging for token...")
        try:
            return await run_detached(self._fetch_token, flow, code, name="token-exchange")
        except (OAuth2Error, requests.RequestException, ValueError) as e:
            raise AuthError(AuthErrorKind.EXCHANGE_FAILED, str(e)) from e

    @staticmethod
    def _fetch_token(flow: InstalledAppFlow, code: str) -> Credentials:
        flow.fetch_token(code=code)
        return flow.credentials
