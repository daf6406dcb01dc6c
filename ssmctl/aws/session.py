"""
ssmctl AWS - Session Manager launcher.

Hands a resolved (instance_id, profile, region) to the AWS CLI session
plugin. The CLI owns the terminal for the duration of the session.
"""

from __future__ import annotations

import asyncio
import json
import shutil
from dataclasses import dataclass
from typing import TYPE_CHECKING

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ssmctl.core.exceptions import SessionError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ssmctl.aws.client import AWSClient

PORT_FORWARD_DOCUMENT = "AWS-StartPortForwardingSession"
OFFLINE_STATUS = "Offline"


@dataclass(frozen=True)
class PortMapping:
    """Local port to remote port."""

    local_port: int
    remote_port: int

    @classmethod
    def parse(cls, text: str) -> PortMapping:
        """
        Parse "LOCAL:REMOTE" or a single port used for both sides.

        Raises:
            ValueError: On malformed input or out-of-range ports.
        """
        local, sep, remote = text.partition(":")
        if not sep:
            remote = local
        try:
            mapping = cls(int(local), int(remote))
        except ValueError:
            raise ValueError(f"invalid port mapping: {text!r}") from None
        for port in (mapping.local_port, mapping.remote_port):
            if not 1 <= port <= 65535:
                raise ValueError(f"port out of range in {text!r}")
        return mapping


class SessionLauncher:
    """Starts interactive and port-forwarding sessions via `aws ssm start-session`."""

    def __init__(self, command: str = "aws") -> None:
        self.command = command

    def build_start_session_args(self, client: AWSClient, instance_id: str) -> list[str]:
        """Arguments for an interactive session."""
        return [
            self.command, "ssm", "start-session",
            "--target", instance_id,
            "--profile", client.profile,
            "--region", client.region,
        ]

    def build_port_forward_args(
        self, client: AWSClient, instance_id: str, mapping: PortMapping
    ) -> list[str]:
        """Arguments for a port-forwarding session."""
        parameters = {
            "portNumber": [str(mapping.remote_port)],
            "localPortNumber": [str(mapping.local_port)],
        }
        return [
            *self.build_start_session_args(client, instance_id),
            "--document-name", PORT_FORWARD_DOCUMENT,
            "--parameters", json.dumps(parameters),
        ]

    async def check_reachability(self, client: AWSClient, instance_id: str) -> str:
        """
        Ensure SSM knows the instance and it is not offline.

        Returns:
            The current ping status.

        Raises:
            SessionError: If the instance is unknown to SSM or offline.
        """
        try:
            info = await client.get_instance_information(instance_id)
        except (BotoCoreError, ClientError) as e:
            raise SessionError(f"failed to describe instance information: {e}") from e

        if info is None:
            raise SessionError(
                f"instance {instance_id} not found in SSM inventory", {"instance_id": instance_id}
            )

        status = info.get("PingStatus", "")
        if status == OFFLINE_STATUS:
            raise SessionError(
                f"instance {instance_id} is offline (ping status: {status})",
                {"instance_id": instance_id},
            )

        logger.debug(f"📡 {instance_id} reachable via SSM (ping status: {status})")
        return status

    async def start_session(self, client: AWSClient, instance_id: str) -> int:
        """Open an interactive session. Returns the CLI exit code."""
        logger.info(f"🌐 Starting SSM session to {instance_id} ({client.profile}/{client.region})")
        await self.check_reachability(client, instance_id)
        return await self._run(self.build_start_session_args(client, instance_id))

    async def start_port_forwarding(
        self, client: AWSClient, instance_id: str, mapping: PortMapping
    ) -> int:
        """Forward one local port to the instance. Returns the CLI exit code."""
        logger.info(
            f"🌐 Forwarding localhost:{mapping.local_port} -> {instance_id}:{mapping.remote_port}"
        )
        return await self._run(self.build_port_forward_args(client, instance_id, mapping))

    async def start_port_forwarding_many(
        self, client: AWSClient, instance_id: str, mappings: Sequence[PortMapping]
    ) -> None:
        """
        Run several port forwards concurrently until they all exit.

        Raises:
            SessionError: If no mapping is given or any forward fails.
        """
        if not mappings:
            raise SessionError("no port mappings provided")

        await self.check_reachability(client, instance_id)
        results = await asyncio.gather(
            *[self.start_port_forwarding(client, instance_id, m) for m in mappings],
            return_exceptions=True,
        )
        for mapping, result in zip(mappings, results):
            if isinstance(result, BaseException):
                raise SessionError(
                    f"port forward {mapping.local_port}:{mapping.remote_port} failed: {result}"
                ) from result

    async def _run(self, args: list[str]) -> int:
        if shutil.which(args[0]) is None:
            raise SessionError(
                f"'{args[0]}' not found in PATH; install the AWS CLI and the Session Manager plugin"
            )

        logger.debug(f"🖥️ Executing: {' '.join(args)}")
        process = await asyncio.create_subprocess_exec(*args)
        exit_code = await process.wait()
        if exit_code != 0:
            raise SessionError(f"session client exited with code {exit_code}", {"exit_code": exit_code})
        return exit_code
