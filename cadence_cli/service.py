"""Service lifecycle for Cadence.

CadenceService wires together the remote client, the job scheduler and
the guard session store, and owns their start/stop order. The HTTP app
holds one instance for the lifetime of the process.
"""

import logging
from typing import Optional

from cadence_cli.config import CadenceConfig
from cadence_cli.credentials import convert_credential, credential_value
from cadence_cli.errors import AuthError
from cadence_cli.guard.sessions import GuardSession, GuardSessionStore
from cadence_cli.remote.client import HttpRemoteService, RemoteService
from cadence_cli.scheduler.job_scheduler import JobHandle, JobScheduler
from cadence_cli.scheduler.registry import JobRegistry

logger = logging.getLogger(__name__)


class CadenceService:
    """Owns the components behind the HTTP API.

    Example:
        service = CadenceService(config)
        await service.start()
        handle = await service.submit(blob, url, amount=3, interval=1.0)
        await service.stop()
    """

    def __init__(
        self,
        config: CadenceConfig,
        remote: Optional[RemoteService] = None,
        scheduler: Optional[JobScheduler] = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Cadence configuration
            remote: Remote service (an HttpRemoteService by default)
            scheduler: Job scheduler (built from the config by default)
        """
        self._config = config
        self._remote = remote or HttpRemoteService(config.remote)
        self._scheduler = scheduler or JobScheduler(
            self._remote,
            registry=JobRegistry(),
            config=config.scheduler,
        )
        self._sessions = GuardSessionStore()
        self._running = False

    @property
    def config(self) -> CadenceConfig:
        return self._config

    @property
    def scheduler(self) -> JobScheduler:
        return self._scheduler

    @property
    def sessions(self) -> GuardSessionStore:
        return self._sessions

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the remote client, then the scheduler."""
        if self._running:
            return

        logger.info("Starting Cadence service...")
        await self._remote.initialize()
        await self._scheduler.start()
        self._running = True
        logger.info("Cadence service started")

    async def stop(self) -> None:
        """Stop components in reverse order of start."""
        if not self._running:
            return

        logger.info("Stopping Cadence service...")
        self._running = False

        try:
            await self._scheduler.stop()
        finally:
            await self._remote.close()

        logger.info("Cadence service stopped")

    async def submit(
        self,
        credential_blob: str,
        url: str,
        amount: int,
        interval: float,
    ) -> JobHandle:
        """Convert the credential blob and start a job.

        Raises:
            CredentialFormatError: If the blob is malformed
            ValidationError, ResolutionError, AuthError: From the scheduler
        """
        credential = convert_credential(
            credential_blob, self._config.remote.required_credential_keys
        )
        return await self._scheduler.start_job(credential, url, amount, interval)

    async def login(self, credential_blob: str) -> GuardSession:
        """Create a guard session from a credential blob.

        Raises:
            CredentialFormatError: If the blob is malformed
            AuthError: If no token can be derived
        """
        credential = convert_credential(
            credential_blob, self._config.remote.required_credential_keys
        )
        token = await self._remote.derive_access_token(credential)
        if not token:
            raise AuthError("Unable to get access token. Please check your credential.")

        user_id = credential_value(credential_blob, self._config.remote.user_id_key) or "unknown"
        return self._sessions.create(user_id=user_id, credential=credential, access_token=token)
