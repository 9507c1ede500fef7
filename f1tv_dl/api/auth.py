"""
Obtains a working F1TV access token by trying an ordered chain of strategies:
the token cache, passive extraction, the manual token file, and finally an
automated login. Every candidate must pass a liveness check before it is used.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional, Protocol

from f1tv_dl.exceptions import AuthExhaustedError
from f1tv_dl.models.credential import Credential, CredentialSource
from f1tv_dl.storage.token_store import ManualTokenFile, TokenStore
from f1tv_dl.utils.formatting import mask_token

log = logging.getLogger(__name__)


class LivenessChecker(Protocol):
    async def check_token(self, token: str) -> bool: ...


class PassiveTokenSource(Protocol):
    """Finds an existing token in local state (e.g. a logged-in browser profile)."""

    async def extract(self) -> Optional[str]: ...


class TokenAcquirer(Protocol):
    """Performs an interactive or automated login and returns the bearer token."""

    async def acquire(self, username: str, password: str) -> str: ...


class AcquisitionStrategy:
    """One link in the acquisition chain."""

    name = "strategy"

    def applies(self, username: str, password: str) -> bool:
        return True

    def candidates(self, username: str, password: str) -> AsyncIterator[Credential]:
        """
        Yields candidate credentials. The manager stops iterating as soon as one
        passes the liveness check, so later candidates are only produced when
        earlier ones were rejected.
        """
        raise NotImplementedError

    @property
    def persists(self) -> bool:
        """Whether a validated credential from this strategy is written to the cache."""
        return True


class CachedTokenStrategy(AcquisitionStrategy):
    name = "cache"

    def __init__(self, store: TokenStore):
        self._store = store

    @property
    def persists(self) -> bool:
        return False

    async def candidates(self, username, password):
        credential = self._store.load()
        if credential is None:
            log.debug("No cached token found.")
            return
        if credential.is_expired():
            log.debug("Cached token is expired.")
            return
        if credential.is_stale():
            log.debug("Cached token is too old.")
            return
        log.debug(f"Using cached token from {credential.source.value}.")
        yield credential


class PassiveExtractionStrategy(AcquisitionStrategy):
    name = "browser-extract"

    def __init__(self, source: Optional[PassiveTokenSource]):
        self._source = source

    def applies(self, username, password):
        return self._source is not None

    async def candidates(self, username, password):
        try:
            token = await self._source.extract()
        except Exception as e:
            log.debug(f"Passive token extraction failed: {e}")
            return
        if token:
            yield Credential.from_token(token, CredentialSource.BROWSER_EXTRACT)


class ManualFileStrategy(AcquisitionStrategy):
    name = "manual-file"

    def __init__(self, manual_file: ManualTokenFile):
        self._manual_file = manual_file

    async def candidates(self, username, password):
        token = self._manual_file.read()
        if token:
            yield Credential.from_token(token, CredentialSource.MANUAL_FILE)


class AutomatedLoginStrategy(AcquisitionStrategy):
    """
    Logs in through the TokenAcquirer, retrying with a backoff that starts at
    ``base_delay`` seconds and grows by 1.5x after every failed attempt.
    """

    name = "automated-login"

    def __init__(
        self,
        acquirer: Optional[TokenAcquirer],
        max_attempts: int = 3,
        base_delay: float = 2.0,
    ):
        self._acquirer = acquirer
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    def applies(self, username, password):
        return self._acquirer is not None and bool(username and password)

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def candidates(self, username, password):
        delay = self.base_delay
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                log.debug(f"Waiting {delay:.1f}s before login retry...")
                await self._sleep(delay)
                delay *= 1.5
            log.debug(f"Login attempt {attempt}/{self.max_attempts}...")
            try:
                token = await self._acquirer.acquire(username, password)
            except Exception as e:
                log.debug(f"Login attempt {attempt} failed: {e}")
                continue
            if token:
                yield Credential.from_token(token, CredentialSource.AUTOMATED_LOGIN)


class TokenManager:
    """
    Hands out validated credentials, trying each acquisition strategy in order
    and persisting the first one that passes the liveness check.
    """

    def __init__(
        self,
        checker: LivenessChecker,
        store: TokenStore,
        manual_file: ManualTokenFile,
        passive_source: Optional[PassiveTokenSource] = None,
        acquirer: Optional[TokenAcquirer] = None,
        username: str = "",
        password: str = "",
        max_login_attempts: int = 3,
        login_retry_delay: float = 2.0,
    ):
        self._checker = checker
        self._store = store
        self._username = username
        self._password = password
        self.strategies: list[AcquisitionStrategy] = [
            CachedTokenStrategy(store),
            PassiveExtractionStrategy(passive_source),
            ManualFileStrategy(manual_file),
            AutomatedLoginStrategy(acquirer, max_login_attempts, login_retry_delay),
        ]
        self._current: Optional[Credential] = None
        self._lock = asyncio.Lock()

    async def get_valid_token(
        self, username: str | None = None, password: str | None = None
    ) -> Credential:
        """
        Returns a credential that passed a liveness check.

        Concurrent callers share a single acquisition run; a credential already
        validated in this session is reused until it expires or is invalidated.

        Raises:
            AuthExhaustedError: If no strategy produced a live credential.
        """
        username = username if username is not None else self._username
        password = password if password is not None else self._password

        async with self._lock:
            if self._current and not self._current.is_expired():
                return self._current

            log.debug("Getting valid F1TV token...")
            attempted: list[str] = []
            for strategy in self.strategies:
                if not strategy.applies(username, password):
                    continue
                attempted.append(strategy.name)
                log.debug(f"Trying token strategy: {strategy.name}")
                async for candidate in strategy.candidates(username, password):
                    if await self._is_live(candidate):
                        log.info(
                            f"[green]✓ Token accepted[/green] "
                            f"[dim]({strategy.name}, {mask_token(candidate.value)})[/dim]"
                        )
                        if strategy.persists:
                            self._store.save(candidate)
                        self._current = candidate
                        return candidate
                    log.debug(f"Token from {strategy.name} failed the liveness check.")

            raise AuthExhaustedError(attempted)

    async def _is_live(self, candidate: Credential) -> bool:
        try:
            return await self._checker.check_token(candidate.value)
        except Exception as e:
            log.debug(f"Liveness check raised for {candidate.source.value} token: {e}")
            return False

    def invalidate(self) -> None:
        """Forgets the current credential so the next call re-runs the chain."""
        if self._current is not None:
            log.debug("Invalidating current token.")
        self._current = None
        self._store.clear()

    def clear_cache(self) -> bool:
        self._current = None
        return self._store.clear()
