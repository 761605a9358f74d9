"""
Stop Events, Breakpoints and Watchpoints
========================================

Every call to Machine.run() ends with a StopEvent saying why execution
stopped:

- HALTED: the machine tried to touch an address outside memory (the
  normal way a SUBLEQ program ends, e.g. after ``hlt``)
- STEP_LIMIT: the step budget ran out; a diagnostic, not a halt
- BREAKPOINT: pc reached a breakpoint address (checked before the triple
  at that address executes)
- WATCHPOINT: a triple wrote to a watched cell (checked after the write)

Example usage:

    >>> machine = Machine(image)
    >>> machine.breakpoints.add_breakpoint(12)
    >>> machine.breakpoints.add_write_watchpoint(image.symbols["count"])
    >>> event = machine.run(10_000)
    >>> if event.reason == StopReason.BREAKPOINT:
    ...     print(f"Hit breakpoint at {event.address}")
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class StopReason(Enum):
    """Why Machine.run() returned."""
    HALTED = auto()        # Out-of-bounds access
    STEP_LIMIT = auto()    # max_steps executed
    BREAKPOINT = auto()    # pc reached a breakpoint
    WATCHPOINT = auto()    # Watched cell written


@dataclass
class StopEvent:
    """
    Information about why execution stopped.

    Attributes:
        reason: Why execution stopped
        pc: Program counter when execution stopped
        steps: Total triples executed so far
        address: Breakpoint address, watched cell, or out-of-bounds address
        value: Value written (watchpoints only)
        message: Human-readable description
    """
    reason: StopReason
    pc: int
    steps: int
    address: Optional[int] = None
    value: Optional[int] = None
    message: str = ""

    @property
    def halted(self) -> bool:
        return self.reason == StopReason.HALTED

    def __str__(self) -> str:
        if self.message:
            return self.message
        match self.reason:
            case StopReason.HALTED:
                return f"Halted at pc {self.pc} after {self.steps} steps"
            case StopReason.STEP_LIMIT:
                return f"Step limit reached at pc {self.pc} ({self.steps} steps)"
            case StopReason.BREAKPOINT:
                return f"Breakpoint at {self.address}"
            case StopReason.WATCHPOINT:
                return f"Write {self.value} to {self.address}"
            case _:
                return "Unknown"


class BreakpointManager:
    """
    Holds PC breakpoints and write watchpoints for one machine.

    The machine calls check_pc() before each triple and check_write()
    after each write; both return True to continue.
    """

    def __init__(self):
        self._pc_breakpoints: set[int] = set()
        self._write_watchpoints: set[int] = set()
        self._last_event: Optional[StopEvent] = None

    @property
    def last_event(self) -> Optional[StopEvent]:
        """The event recorded by the last failed check."""
        return self._last_event

    @property
    def breakpoint_count(self) -> int:
        return len(self._pc_breakpoints)

    @property
    def watchpoint_count(self) -> int:
        return len(self._write_watchpoints)

    # =========================================================================
    # PC Breakpoints
    # =========================================================================

    def add_breakpoint(self, address: int) -> None:
        """Stop when pc reaches address, before that triple executes."""
        self._pc_breakpoints.add(address)

    def remove_breakpoint(self, address: int) -> None:
        self._pc_breakpoints.discard(address)

    def has_breakpoint(self, address: int) -> bool:
        return address in self._pc_breakpoints

    def list_breakpoints(self) -> list[int]:
        return sorted(self._pc_breakpoints)

    # =========================================================================
    # Write Watchpoints
    # =========================================================================

    def add_write_watchpoint(self, address: int) -> None:
        """Stop after any triple writes to address."""
        self._write_watchpoints.add(address)

    def remove_write_watchpoint(self, address: int) -> None:
        self._write_watchpoints.discard(address)

    def list_write_watchpoints(self) -> list[int]:
        return sorted(self._write_watchpoints)

    def clear_all(self) -> None:
        self._pc_breakpoints.clear()
        self._write_watchpoints.clear()
        self._last_event = None

    # =========================================================================
    # Check Functions (called by the machine)
    # =========================================================================

    def check_pc(self, pc: int, steps: int) -> bool:
        """
        Check for a breakpoint before executing the triple at pc.

        Returns:
            True to continue execution, False to break
        """
        if pc in self._pc_breakpoints:
            self._last_event = StopEvent(StopReason.BREAKPOINT, pc, steps, address=pc)
            return False
        return True

    def check_write(self, address: int, value: int, pc: int, steps: int) -> bool:
        """
        Check for a watchpoint after a write.

        Returns:
            True to continue execution, False to break
        """
        if address in self._write_watchpoints:
            self._last_event = StopEvent(
                StopReason.WATCHPOINT, pc, steps, address=address, value=value,
            )
            return False
        return True
