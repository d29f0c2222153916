"""The power, lid and battery monitor loop.

One call to :meth:`MonitorLoop.step` is one polling cycle. The state carried
from one cycle to the next (lid position, display power, last full USB
refresh, shutdown flag) lives in an immutable :class:`MonitorState` that is
passed in and returned, never in module globals.

Cycle order:
1. battery: shut down when the level is at or below the threshold;
2. lid: toggle the display on lid transitions, and force it off while the
   lid stays closed;
3. USB: re-assert power on matched devices, with the full power policy
   re-applied once per refresh interval.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from functools import partial

from rich.console import Console

from grubpower.config.models import GrubPowerConfig
from grubpower.monitor.battery import BatteryMonitor, SysrqPowerControl, should_shutdown
from grubpower.monitor.display import (
    DisplayController,
    DisplayState,
    probe_display_controller,
)
from grubpower.monitor.lid import LidState, read_lid_state
from grubpower.monitor.status import StatusReporter
from grubpower.monitor.sysfs import SysfsTree
from grubpower.monitor.usb import UsbPowerEnabler

logger = logging.getLogger(__name__)

POLL_INTERVAL = 5.0
REFRESH_INTERVAL = 60.0


@dataclass(frozen=True, slots=True)
class MonitorState:
    """State carried between monitor cycles.

    Attributes:
        lid: Lid state observed in the previous cycle.
        display: Display power state last set by the monitor.
        last_refresh: Wall-clock time of the last full USB policy pass.
        shutdown: Set once the low-battery shutdown has been issued (terminal).
    """

    lid: LidState = LidState.OPEN
    display: DisplayState = DisplayState.ON
    last_refresh: float | None = None
    shutdown: bool = False


class MonitorLoop:
    """Polling loop keeping USB powered while watching battery and lid.

    Attributes:
        poll_interval: Seconds slept between cycles.
        refresh_interval: Seconds between full USB policy passes.
    """

    def __init__(
        self,
        config: GrubPowerConfig,
        *,
        usb: UsbPowerEnabler,
        battery: BatteryMonitor,
        display: DisplayController,
        power: SysrqPowerControl,
        lid_reader: Callable[[], LidState],
        reporter: StatusReporter | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        poll_interval: float = POLL_INTERVAL,
        refresh_interval: float = REFRESH_INTERVAL,
    ) -> None:
        self._config = config
        self._usb = usb
        self._battery = battery
        self._display = display
        self._power = power
        self._read_lid = lid_reader
        self._reporter = reporter
        self._clock = clock
        self._sleep = sleep
        self.poll_interval = poll_interval
        self.refresh_interval = refresh_interval

    @classmethod
    def from_config(
        cls,
        config: GrubPowerConfig,
        sysfs: SysfsTree,
        console: Console | None = None,
    ) -> MonitorLoop:
        """Wire up a loop with the real components for a filesystem root.

        The display mechanism is probed here, once per session.

        Args:
            config: Monitor settings.
            sysfs: Attribute accessor for the target root.
            console: Console for status output. No status output if None.

        Returns:
            Ready-to-run MonitorLoop.
        """
        reporter = None
        if console is not None:
            reporter = StatusReporter(
                console,
                config.port_selection,
                config.min_battery,
                config.log_file if config.enable_logging else None,
            )

        return cls(
            config,
            usb=UsbPowerEnabler(sysfs, config.port_selection, config.disable_autosuspend),
            battery=BatteryMonitor(sysfs),
            display=probe_display_controller(sysfs),
            power=SysrqPowerControl(sysfs),
            lid_reader=partial(read_lid_state, sysfs),
            reporter=reporter,
        )

    @property
    def reporter(self) -> StatusReporter | None:
        """Status reporter, if console output is enabled."""
        return self._reporter

    @property
    def usb(self) -> UsbPowerEnabler:
        """USB power enabler used by the loop."""
        return self._usb

    def start(self) -> MonitorState:
        """Apply the USB power policy once and return the initial state.

        Returns:
            Initial state: lid open, display on, USB just refreshed.
        """
        self._usb.apply()
        return MonitorState(last_refresh=self._clock())

    def step(self, state: MonitorState) -> MonitorState:
        """Run one monitoring cycle.

        Args:
            state: State from the previous cycle.

        Returns:
            State for the next cycle. Once ``shutdown`` is set, the state is
            returned unchanged and nothing else happens.
        """
        if state.shutdown:
            return state

        now = self._clock()

        threshold = self._config.min_battery
        if threshold > 0:
            level = self._battery.read_level()
            if level is not None:
                if should_shutdown(level, threshold):
                    self._power.shutdown(level, threshold)
                    return replace(state, shutdown=True)
                if self._reporter is not None:
                    self._reporter.report_battery(level, now)

        if self._config.lid_control:
            state = self._handle_lid(state)

        return self._handle_usb(state, now)

    def _handle_lid(self, state: MonitorState) -> MonitorState:
        """Apply lid transitions and the closed-lid self-heal check."""
        current = self._read_lid()
        display = state.display

        if current != state.lid:
            if current == LidState.CLOSED:
                logger.info("Lid closed, turning off display...")
                self._display.power_off()
                display = DisplayState.OFF
            else:
                logger.info("Lid opened, turning on display...")
                self._display.power_on()
                display = DisplayState.ON

        # Something may have woken the display while the lid stayed closed
        if current == LidState.CLOSED and display == DisplayState.ON:
            logger.debug("Display on with lid closed, turning it off again")
            self._display.power_off()
            display = DisplayState.OFF

        return replace(state, lid=current, display=display)

    def _handle_usb(self, state: MonitorState, now: float) -> MonitorState:
        """Re-assert USB power, re-applying the full policy when due."""
        if state.last_refresh is None or now - state.last_refresh >= self.refresh_interval:
            self._usb.apply()
            return replace(state, last_refresh=now)

        self._usb.reassert()
        return state

    def run(
        self,
        state: MonitorState | None = None,
        max_cycles: int | None = None,
    ) -> MonitorState:
        """Poll until shutdown (or until max_cycles cycles have run).

        Args:
            state: Starting state. If None, :meth:`start` is called first.
            max_cycles: Stop after this many cycles. None runs forever.

        Returns:
            The final state.
        """
        if state is None:
            state = self.start()

        logger.info("Starting power and lid monitoring loop...")
        cycles = 0
        while not state.shutdown:
            state = self.step(state)
            cycles += 1
            if state.shutdown or (max_cycles is not None and cycles >= max_cycles):
                break
            self._sleep(self.poll_interval)

        return state
