"""Partition name -> session actor."""
import logging
from typing import Callable

from gateway.services.jira_client import JiraClient
from gateway.session.actor import ClientFactory, SessionActor

logger = logging.getLogger(__name__)


class PartitionRegistry:
    """Creates exactly one actor per partition name, on first use."""

    def __init__(
        self,
        signing_secret: Callable[[], str | None],
        client_factory: ClientFactory = JiraClient.from_credentials,
    ):
        self._signing_secret = signing_secret
        self._client_factory = client_factory
        self._actors: dict[str, SessionActor] = {}

    def get(self, partition: str) -> SessionActor:
        actor = self._actors.get(partition)
        if actor is None:
            actor = SessionActor(partition, self._signing_secret, self._client_factory)
            self._actors[partition] = actor
            logger.info(f"Started session actor for partition {partition}")
        return actor

    def __contains__(self, partition: str) -> bool:
        return partition in self._actors

    async def restart(self, partition: str) -> None:
        """Drop a partition's actor; its sessions are discarded."""
        actor = self._actors.pop(partition, None)
        if actor is not None:
            await actor.close_all()
            logger.info(f"Restarted session actor for partition {partition}")

    async def aclose(self) -> None:
        for partition in list(self._actors):
            await self.restart(partition)
