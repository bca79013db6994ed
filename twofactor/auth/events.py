"""
Lifecycle events.

Listeners run synchronously in registration order. An exception in a
listener propagates to the caller of the operation that dispatched it.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, List, Type

from ..utils.secrets import mask_secret

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TwoFactorEvent:
    credential_id: str


@dataclass(frozen=True)
class TwoFactorEnabled(TwoFactorEvent):
    """Two-factor was confirmed and enabled."""


@dataclass(frozen=True)
class TwoFactorDisabled(TwoFactorEvent):
    """Two-factor was disabled and the credential deleted."""


@dataclass(frozen=True)
class RecoveryCodesGenerated(TwoFactorEvent):
    """A new batch of recovery codes replaced the old one."""


@dataclass(frozen=True)
class RecoveryCodesDepleted(TwoFactorEvent):
    """The last unused recovery code was just consumed."""


Listener = Callable[[TwoFactorEvent], None]


class EventDispatcher:
    """Maps event types to listeners."""

    def __init__(self):
        self._listeners: DefaultDict[Type[TwoFactorEvent], List[Listener]] = defaultdict(list)

    def listen(self, event_type: Type[TwoFactorEvent], listener: Listener) -> None:
        self._listeners[event_type].append(listener)

    def dispatch(self, event: TwoFactorEvent) -> None:
        logger.info(f"{type(event).__name__} for credential {mask_secret(event.credential_id)}")
        for listener in self._listeners.get(type(event), []):
            listener(event)
