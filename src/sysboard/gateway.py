"""Command gateway: the single asynchronous call boundary to the backend."""

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

Args = Mapping[str, Any]
Transport = Callable[[str, dict[str, Any]], Awaitable[Any]]


class GatewayError(Exception):
    """Base class for failures crossing the gateway."""

    def __init__(self, command: str, message: str = "") -> None:
        self.command = command
        self.message = message
        super().__init__(message or command)


class Unreachable(GatewayError):
    """The backend did not answer."""


class Rejected(GatewayError):
    """The backend ran the command and reported a domain error."""


class Malformed(GatewayError):
    """The response could not be decoded into the expected shape."""


class UnknownCommand(GatewayError):
    """The backend does not recognise the command name."""

    def __init__(self, command: str, message: str = "") -> None:
        super().__init__(command, message or f"unknown command: {command}")


class CommandGateway:
    """
    Dispatches named commands to a transport.

    Each ``invoke`` makes exactly one transport call; retrying is the
    caller's business. Transport failures are translated into the
    ``GatewayError`` taxonomy so callers only ever handle one family.
    """

    def __init__(self, transport: Transport, commands: Iterable[str] | None = None) -> None:
        """
        Initialize the gateway.

        Args:
            transport: Async callable taking (command, args) and returning
                the decoded response.
            commands: Names the backend recognises. When given, other names
                fail with UnknownCommand before reaching the transport.
        """
        self._transport = transport
        self._commands = frozenset(commands) if commands is not None else None

    @property
    def commands(self) -> frozenset[str] | None:
        """Command names known to be accepted, if advertised."""
        return self._commands

    async def invoke(
        self,
        command: str,
        args: Args | None = None,
        *,
        expect: type | tuple[type, ...] | None = None,
    ) -> Any:
        """
        Call ``command`` on the backend and return its result.

        Args:
            command: Backend command name.
            args: Flat mapping of primitives or lists.
            expect: Type (or types) the result must be an instance of.

        Raises:
            UnknownCommand, Unreachable, Rejected, Malformed.
        """
        if self._commands is not None and command not in self._commands:
            logger.warning("refusing unknown command %s", command)
            raise UnknownCommand(command)

        logger.debug("invoke %s", command)
        try:
            result = await self._transport(command, dict(args or {}))
        except GatewayError as exc:
            logger.warning("%s failed: %s", command, exc)
            raise
        except (ConnectionError, EOFError, OSError) as exc:
            logger.warning("%s unreachable: %s", command, exc)
            raise Unreachable(command, str(exc) or type(exc).__name__) from exc
        except Exception as exc:
            logger.warning("%s rejected: %s", command, exc)
            raise Rejected(command, str(exc) or type(exc).__name__) from exc

        if expect is not None and not isinstance(result, expect):
            logger.warning("%s returned %s", command, type(result).__name__)
            raise Malformed(command, f"unexpected {type(result).__name__} response")
        return result
