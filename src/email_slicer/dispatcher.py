"""Maps UI command messages onto orchestrator operations."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Dict, Final

from src.email_slicer.errors import SlicerError
from src.email_slicer.orchestrator import SliceOrchestrator

logger = logging.getLogger(__name__)

BUSY_MESSAGE: Final[str] = "Another command is still running."

Handler = Callable[[Mapping[str, Any]], Awaitable[object]]

__all__ = ["BUSY_MESSAGE", "COMMAND_TYPES", "CommandDispatcher", "Handler"]

COMMAND_TYPES: Final[tuple[str, ...]] = (
    "generate-slices",
    "export-html",
    "clear-slices",
    "clear-guides",
)


class CommandDispatcher:
    """
    Routes ``{"type": ...}`` command messages to handlers, one command at a time.

    Failures never escape :meth:`dispatch`; they are reported to the UI as a single
    ``error`` message.
    """

    def __init__(self, orchestrator: SliceOrchestrator) -> None:
        self.orchestrator = orchestrator
        self._busy = False
        self._handlers: Dict[str, Handler] = {
            "generate-slices": self._generate,
            "export-html": self._export,
            "clear-slices": self._clear_slices,
            "clear-guides": self._clear_guides,
        }

    @property
    def busy(self) -> bool:
        return self._busy

    async def _generate(self, message: Mapping[str, Any]) -> object:  # noqa: ARG002
        return await self.orchestrator.generate_slices()

    async def _export(self, message: Mapping[str, Any]) -> object:
        return await self.orchestrator.export_html(add_footer=message.get("addFooter") is not False)

    async def _clear_slices(self, message: Mapping[str, Any]) -> object:  # noqa: ARG002
        return await self.orchestrator.clear_slices()

    async def _clear_guides(self, message: Mapping[str, Any]) -> object:  # noqa: ARG002
        return await self.orchestrator.clear_guides()

    def _report_error(self, message: str) -> None:
        self.orchestrator.sink.post_message({"type": "error", "message": message})

    def selection_changed(self) -> None:
        self.orchestrator.broadcast_selection()

    async def dispatch(self, message: Mapping[str, Any]) -> bool:
        """
        Handle one command message.

        Returns:
            bool: ``True`` when the handler completed without reporting an error.
        """

        command = message.get("type")
        handler = self._handlers.get(command) if isinstance(command, str) else None
        if handler is None:
            logger.warning("Ignoring unknown command %r", command)
            return False
        if self._busy:
            logger.warning("Rejected %s while another command is running", command)
            self._report_error(BUSY_MESSAGE)
            return False

        self._busy = True
        try:
            await handler(message)
        except SlicerError as exc:
            logger.info("%s failed: %s", command, exc)
            self._report_error(str(exc))
            return False
        except Exception as exc:
            logger.exception("Unexpected failure while handling %s", command)
            self._report_error(str(exc) or exc.__class__.__name__)
            return False
        finally:
            self._busy = False
        return True
