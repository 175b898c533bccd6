"""Command dispatch: validation, rate limiting, sending and inbound routing."""

import logging

from PySide6.QtCore import QObject, Signal

from nettools.channel import ChannelManager
from nettools.errors import NotConnectedError, Rejection
from nettools.models import Command, Completion, ErrorEvent, Fragment, Kind
from nettools.ratelimit import RateLimiter
from nettools.session_store import SessionStore
from nettools.validation import ValidationResult, ValidationService, normalize_host, normalize_parameters

logger = logging.getLogger(__name__)

NOT_CONNECTED_MESSAGE = "not connected"


class Dispatcher(QObject):
    """Orchestrates submissions and routes inbound messages to the store.

    Submission order: local syntax check, connectivity, resolvability,
    rate limit, begin run, send. Refusals are reported through the rejected
    signal and never reach the executor.
    """

    # Signals
    rejected = Signal(str, object, str)  # (kind, Rejection, message)
    dispatched = Signal(object)  # Command

    def __init__(
        self,
        validator: ValidationService,
        rate_limiter: RateLimiter,
        channel: ChannelManager,
        store: SessionStore,
        parent=None,
    ):
        super().__init__(parent)

        self.validator = validator
        self.rate_limiter = rate_limiter
        self.channel = channel
        self.store = store

        self.channel.message_received.connect(self.route_inbound)

    def submit(self, kind, target: str, parameters: dict):
        """Validate and send a command for kind.

        The outcome is reported asynchronously when a resolvability check
        is needed: through the dispatched or rejected signal, or as an
        error recorded in the session.
        """
        kind = Kind(kind)

        result = self.validator.check(kind, target, parameters)
        if not result.ok:
            self.validator.invalidate(kind)
            self._reject(kind, result)
            return

        target = normalize_host(target)
        parameters = normalize_parameters(kind, parameters)

        if not self.channel.is_connected():
            logger.warning("Submit while disconnected: kind=%s, target=%s", kind.value, target)
            self.validator.invalidate(kind)
            self.store.begin_run(kind, target, parameters)
            self.store.apply_error(kind, NOT_CONNECTED_MESSAGE)
            return

        self.validator.validate(
            kind,
            target,
            parameters,
            lambda validation: self._on_validated(kind, target, parameters, validation),
        )

    def set_target(self, kind, target: str):
        """Note that the user edited the target for kind.

        A resolvability check still running for a different target is
        invalidated so its result can never admit the new target.
        """
        kind = Kind(kind)
        pending = self.validator.pending_target(kind)
        if pending is not None and pending != normalize_host(target):
            self.validator.invalidate(kind)

    def route_inbound(self, message):
        """Apply an inbound message to the session of its kind.

        Messages are applied even when the kind is not running, so late
        output after a tool switch is not lost.
        """
        if isinstance(message, Fragment):
            self.store.apply_fragment(message.kind, message.text)
        elif isinstance(message, ErrorEvent):
            self.store.apply_error(message.kind, message.message)
        elif isinstance(message, Completion):
            self.store.apply_completion(message.kind, message.ended_at)
        else:
            raise TypeError(f"Unknown inbound message: {message!r}")

    def _on_validated(self, kind: Kind, target: str, parameters: dict, validation: ValidationResult):
        if not validation.ok:
            self._reject(kind, validation)
            return

        if not self.rate_limiter.admit():
            wait_ms = self.rate_limiter.next_available_in_ms()
            self._reject(
                kind,
                ValidationResult.failure(
                    Rejection.RATE_LIMITED,
                    f"{Rejection.RATE_LIMITED.message}, retry in {wait_ms / 1000:.0f}s",
                ),
            )
            return

        command = Command(kind=kind, target=target, parameters=parameters)
        self.store.begin_run(kind, target, parameters)

        try:
            self.channel.send(command)
        except NotConnectedError:
            logger.warning("Channel closed before send: kind=%s, target=%s", kind.value, target)
            self.store.apply_error(kind, NOT_CONNECTED_MESSAGE)
            return

        logger.info("Command dispatched: kind=%s, target=%s", kind.value, target)
        self.dispatched.emit(command)

    def _reject(self, kind: Kind, result: ValidationResult):
        logger.info("Submission rejected: kind=%s, reason=%s", kind.value, result.rejection.value)
        self.rejected.emit(kind.value, result.rejection, result.message)
