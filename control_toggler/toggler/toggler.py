"""
Control Toggler

Tracks and changes the value of a single remote control through the
asynchronous command queue:

1. set_value() cancels a conflicting queued command and/or enqueues a new one
2. update() reads the most recent reading and the command state in parallel
3. merge_value() decides which of the two is authoritative
4. While started, update() reschedules itself, faster while a change is pending
"""

import asyncio
from typing import Any, Callable

from control_toggler.api.auth import AuthorizationV2Builder
from control_toggler.api.client import CommandApi, ReadingApi
from control_toggler.common.exceptions import InvalidCredentialsError
from control_toggler.common.logging_setup import (
    get_service_logger,
    log_command,
    log_control_value,
)

from .merge import merge_value, values_equal
from .state import (
    ACTIVE_STATES,
    SET_CONTROL_PARAMETER_TOPIC,
    Command,
    CommandParameter,
    CommandState,
    ControlReading,
)

logger = get_service_logger("toggler")

DEFAULT_REFRESH_MS = 20000
DEFAULT_PENDING_REFRESH_MS = 5000
DEFAULT_START_DELAY_MS = 20

ControlCallback = Callable[["ControlToggler", Exception | None], None]


class ControlToggler:
    """
    Manage the value of one switch-like control on one device.

    Because a change goes through a command queue and is only confirmed by a
    later reading, the toggler keeps the last known reading and command and
    merges them on every refresh. Once start() is called it polls the remote
    state and invokes `callback` whenever the value or command state changes.

    Usage:
        auth = AuthorizationV2Builder("token").save_signing_key("secret")
        toggler = ControlToggler(CommandApi("https://data.example"), auth, 123, "/power/switch/1")
        toggler.callback = lambda t, err: print(t.value(), t.has_pending_state_change)
        toggler.start()
        await toggler.set_value(1)

    start() and stop() schedule on the running event loop, so they must be
    called from within it.
    """

    def __init__(
        self,
        api: CommandApi,
        auth: AuthorizationV2Builder,
        device_id: int,
        control_id: str,
        query_api: ReadingApi | None = None,
        query_auth: AuthorizationV2Builder | None = None,
    ):
        self.api = api
        self.auth = auth
        self.device_id = device_id
        self.control_id = control_id
        self.query_api = query_api or ReadingApi.for_command_api(api)
        self.query_auth = query_auth or auth
        self._log = logger.bind(device_id=device_id, control_id=control_id)

        # Polling rates
        self.refresh_ms: int = DEFAULT_REFRESH_MS
        self.pending_refresh_ms: int = DEFAULT_PENDING_REFRESH_MS

        # Invoked with (toggler, error) after the control state changes
        self.callback: ControlCallback | None = None

        self._last_known_reading: ControlReading | None = None
        self._last_known_command: Command | None = None

        # Timer state; a fired handle stays set until stop()
        self._poll_handle: asyncio.TimerHandle | None = None
        self._poll_task: asyncio.Task | None = None

    # ============================================
    # STATE
    # ============================================

    def value(self) -> Any:
        """The last known control value, or None if never refreshed"""
        reading = self._last_known_reading
        return reading.value if reading is not None else None

    @property
    def last_known_command(self) -> Command | None:
        return self._last_known_command

    @property
    def last_known_reading(self) -> ControlReading | None:
        return self._last_known_reading

    @property
    def has_pending_state_change(self) -> bool:
        """True if the last known command is still in flight"""
        command = self._last_known_command
        return command is not None and command.state in ACTIVE_STATES

    @property
    def is_polling(self) -> bool:
        return self._poll_handle is not None

    def current_refresh_ms(self) -> int:
        """Polling interval for the current pending state"""
        return self.pending_refresh_ms if self.has_pending_state_change else self.refresh_ms

    def _notify(self, error: Exception | None = None) -> None:
        callback = self.callback
        if callback is None:
            return
        try:
            callback(self, error)
        except Exception as e:
            self._log.error(f"Error in callback: {e}")

    # ============================================
    # SET VALUE
    # ============================================

    async def set_value(self, desired_value: Any) -> Command | None:
        """
        Request the control be changed to desired_value.

        A queued command for a different value is canceled first. Nothing is
        sent if the control already has the value or a command for it is
        pending; the existing command is returned in that case.

        Returns:
            The command now in effect (None if a cancel left nothing queued)
        """
        if not self.auth.signing_key_valid:
            raise InvalidCredentialsError()

        current_value = self.value()
        pending = self._last_known_command
        pending_state = pending.state if pending else None
        pending_value = pending.value if pending else None

        cancel_id = None
        if pending_state is CommandState.QUEUED and not values_equal(pending_value, desired_value):
            self._log.debug(
                f"Canceling {self.device_id} pending control {self.control_id} "
                f"switch to {pending_value}"
            )
            cancel_id = pending.id
            # Cleared before the cancel resolves, and again once it does
            self._last_known_command = None
            pending_value = None

        enqueue = (
            not values_equal(current_value, desired_value)
            and not values_equal(pending_value, desired_value)
        )

        if cancel_id is None and not enqueue:
            return self._last_known_command

        try:
            if cancel_id is not None:
                await self.api.cancel_command(self.auth, cancel_id)
                self._last_known_command = None
                self._log.debug(f"Canceled command {cancel_id}", extra={"command_id": cancel_id})

            if enqueue:
                self._log.debug(
                    f"Request {self.device_id} to change control {self.control_id} "
                    f"to {desired_value}"
                )
                command = await self.api.enqueue_command(
                    self.auth,
                    self.device_id,
                    SET_CONTROL_PARAMETER_TOPIC,
                    [CommandParameter(self.control_id, str(desired_value))],
                )
                if command is not None:
                    self._last_known_command = command
                    log_command(self._log, "enqueued", command)
                else:
                    self._log.warning(
                        f"Enqueue of {self.control_id} = {desired_value} returned no command"
                    )
        except Exception as e:
            self._log.error(
                f"Error updating {self.device_id} control toggler {self.control_id}: {e}",
            )
            self._notify(e)
            raise

        self._notify()

        # Poll at the rate matching the new pending state right away
        if self._poll_handle is not None:
            self._schedule(self.current_refresh_ms())

        return self._last_known_command

    # ============================================
    # UPDATE
    # ============================================

    def _find_active_command(self, commands: list[Command]) -> Command | None:
        """Latest set-control-parameter command for this control; first wins on ties"""
        active = None
        for command in commands:
            if not command.targets(self.control_id):
                continue
            if active is None or (
                command.created_at is not None
                and (active.created_at is None or active.created_at < command.created_at)
            ):
                active = command
        if active is not None:
            self._log.debug(
                f"Active command for {self.device_id} found in state {active.state_name} "
                f"(set control {self.control_id} to {active.value})"
            )
        return active

    async def update(self) -> Any:
        """
        Refresh the control state from the remote APIs.

        Called periodically once start() has been called; call directly only
        to refresh on demand. Any failed request fails the whole refresh.

        Returns:
            The control value after the refresh
        """
        try:
            return await self._refresh()
        finally:
            # Keep polling after errors too, unless stopped meanwhile
            if self._poll_handle is not None:
                self._schedule(self.current_refresh_ms())

    async def _refresh(self) -> Any:
        if not self.query_auth.signing_key_valid or not self.auth.signing_key_valid:
            raise InvalidCredentialsError()

        tracked = self._last_known_command
        requests = [
            self.query_api.get_most_recent_readings(
                self.query_auth, self.device_id, self.control_id
            ),
            self.api.get_pending_commands(self.auth, self.device_id),
        ]
        if tracked is not None and not tracked.is_finished():
            # The pending list drops a command as soon as it completes, before
            # the reading catches up; look it up directly
            requests.append(self.api.get_command(self.auth, tracked.id))

        try:
            results = await asyncio.gather(*requests)
        except Exception as e:
            self._log.error(
                f"Error querying {self.device_id} control toggler {self.control_id} status: {e}",
            )
            self._notify(e)
            raise

        readings: list[ControlReading] = results[0]
        pending: list[Command] = results[1]
        exec_command: Command | None = results[2] if len(results) > 2 else None

        reading = next((r for r in readings if r.source_id == self.control_id), None)
        active_command = self._find_active_command(pending)

        new_value = merge_value(
            reading, exec_command or active_command or self._last_known_command
        )

        if not values_equal(new_value, self.value()) or exec_command is not None:
            self._last_known_reading = reading
            if reading is not None and active_command is None:
                # A just-completed command can be newer than the reading
                reading.value = new_value
            self._last_known_command = exec_command or active_command
            if exec_command is not None:
                log_command(self._log, "observed", exec_command)
            log_control_value(
                self._log,
                self.device_id,
                self.control_id,
                new_value,
                self.has_pending_state_change,
            )
            self._notify()

        return self.value()

    # ============================================
    # POLLING
    # ============================================

    def _schedule(self, delay_ms: float) -> None:
        """Replace any scheduled poll with one after delay_ms"""
        if self._poll_handle is not None:
            self._poll_handle.cancel()
        loop = asyncio.get_running_loop()
        self._poll_handle = loop.call_later(delay_ms / 1000.0, self._on_poll_timer)

    def _on_poll_timer(self) -> None:
        self._poll_task = asyncio.ensure_future(self._poll())

    async def _poll(self) -> None:
        try:
            await self.update()
        except Exception as e:
            # Already passed to the callback; polling continues
            self._log.debug(f"Scheduled refresh of control {self.control_id} failed: {e}")

    def start(self, delay_ms: float | None = DEFAULT_START_DELAY_MS) -> "ControlToggler":
        """
        Start polling the control state.

        Args:
            delay_ms: Delay before the first refresh; 0 or None means the
                default 20 ms

        Returns:
            This toggler
        """
        if self._poll_handle is None:
            self._log.debug(f"Starting {self.device_id} control {self.control_id} polling")
            self._schedule(delay_ms or DEFAULT_START_DELAY_MS)
        return self

    def stop(self) -> "ControlToggler":
        """Stop polling; an in-flight refresh completes but does not reschedule"""
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
            self._log.debug(f"Stopped {self.device_id} control {self.control_id} polling")
        return self

    async def close(self) -> None:
        """Stop polling and close the API clients; a scheduled refresh in flight is canceled"""
        self.stop()

        task = self._poll_task
        self._poll_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self.api.close()
        if self.query_api is not self.api:
            await self.query_api.close()
