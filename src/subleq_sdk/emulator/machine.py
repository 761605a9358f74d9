"""
SUBLEQ Reference Interpreter
============================

The Machine executes a program image one triple at a time:

    A, B, C = memory[pc], memory[pc+1], memory[pc+2]
    memory[B] = memory[B] - memory[A]        (wrapped to cell_bits)
    pc = C if memory[B] <= 0 else pc + 3

Memory is one flat list of signed cells. Code and data are not told apart:
a program may rewrite its own triples.

Halting
-------
Any access outside ``[0, len(memory))``, whether fetching the triple at pc,
reading A or reading/writing B, halts the machine before anything changes.
``hlt`` relies on this by jumping to -1. Halting is a normal StopEvent,
never an exception.

Example usage:
    >>> from subleq_sdk.assembler import assemble
    >>> from subleq_sdk.emulator import Machine
    >>> machine = Machine(assemble(source), memory_size=64)
    >>> event = machine.run(10_000)
    >>> event.reason, machine.read(30)
    (<StopReason.HALTED: 1>, 24)
"""

import logging
from typing import Optional

from subleq_sdk.errors import MachineError
from subleq_sdk.assembler.emitter import ProgramImage
from subleq_sdk.assembler.symbols import TEMP_FIELDS
from .breakpoints import BreakpointManager, StopEvent, StopReason

logger = logging.getLogger(__name__)


DEFAULT_MAX_STEPS = 1_000_000


class Machine:
    """
    SUBLEQ machine with breakpoint and watchpoint support.

    Args:
        program: A ProgramImage, or raw cell values
        memory_size: Total cells; defaults to the image length. Extra
                     cells are zero.
        cell_bits: Cell width; defaults to the image's width (or 64)
        entry: Starting pc; defaults to the image's entry (or 0)

    Raises:
        MachineError: memory_size smaller than the image, or bad cell_bits
    """

    def __init__(
        self,
        program: ProgramImage | list[int],
        memory_size: Optional[int] = None,
        cell_bits: Optional[int] = None,
        entry: Optional[int] = None,
    ):
        if isinstance(program, ProgramImage):
            cells = program.cells
            self._temps = dict(program.temps)
            cell_bits = cell_bits or program.cell_bits
            entry = program.entry if entry is None else entry
        else:
            cells = list(program)
            self._temps = {}

        self.cell_bits = cell_bits or 64
        if self.cell_bits < 2:
            raise MachineError(f"cell width must be at least 2 bits, got {self.cell_bits}")
        self._modulus = 1 << self.cell_bits
        self._max_value = (1 << (self.cell_bits - 1)) - 1

        if memory_size is None:
            memory_size = len(cells)
        if memory_size < len(cells):
            raise MachineError(
                f"memory size {memory_size} is smaller than the {len(cells)}-cell image"
            )

        self._image = [self._wrap(c) for c in cells] + [0] * (memory_size - len(cells))
        self._entry = entry or 0
        self.breakpoints = BreakpointManager()
        self.reset()

    # =========================================================================
    # State
    # =========================================================================

    def reset(self) -> None:
        """Reload the image, zero the step counter and return to the entry."""
        self._memory = list(self._image)
        self._pc = self._entry
        self._steps = 0
        self._halt: Optional[StopEvent] = None
        self._last_write: tuple[int, int] = (0, 0)

    @property
    def pc(self) -> int:
        return self._pc

    @pc.setter
    def pc(self, value: int) -> None:
        self._pc = value
        self._halt = None

    @property
    def steps(self) -> int:
        """Triples executed since the last reset."""
        return self._steps

    @property
    def halted(self) -> bool:
        return self._halt is not None

    @property
    def memory_size(self) -> int:
        return len(self._memory)

    @property
    def memory(self) -> list[int]:
        """Copy of the whole memory."""
        return list(self._memory)

    @property
    def temp_fields(self) -> dict[str, int]:
        """Current values of $t, $e and $r (empty for raw cell programs)."""
        return {
            name: self._memory[self._temps[name]]
            for name in TEMP_FIELDS
            if name in self._temps
        }

    def read(self, address: int) -> int:
        """
        Read one cell.

        Raises:
            MachineError: Address outside memory
        """
        self._check_address(address)
        return self._memory[address]

    def write(self, address: int, value: int) -> None:
        """Write one cell, wrapping the value to the cell width."""
        self._check_address(address)
        self._memory[address] = self._wrap(value)

    def dump(self, start: int = 0, end: Optional[int] = None) -> list[int]:
        """Cells in [start, end)."""
        if end is None:
            end = len(self._memory)
        return self._memory[max(start, 0):min(end, len(self._memory))]

    def _check_address(self, address: int) -> None:
        if not 0 <= address < len(self._memory):
            raise MachineError(f"address {address} outside memory (size {len(self._memory)})")

    def _wrap(self, value: int) -> int:
        value %= self._modulus
        if value > self._max_value:
            value -= self._modulus
        return value

    # =========================================================================
    # Execution
    # =========================================================================

    def step(self) -> Optional[StopEvent]:
        """
        Execute one triple.

        Returns:
            None if a triple executed, or the HALTED event if the machine
            could not execute one (memory is then unchanged)
        """
        if self._halt is not None:
            return self._halt

        memory = self._memory
        size = len(memory)
        pc = self._pc

        if pc < 0 or pc + 3 > size:
            return self._stop_halted(pc if pc < 0 else max(pc, size))

        a, b, c = memory[pc], memory[pc + 1], memory[pc + 2]
        for address in (a, b):
            if not 0 <= address < size:
                return self._stop_halted(address)

        result = self._wrap(memory[b] - memory[a])
        memory[b] = result
        self._steps += 1
        self._pc = c if result <= 0 else pc + 3
        self._last_write = (b, result)
        return None

    def run(self, max_steps: int = DEFAULT_MAX_STEPS) -> StopEvent:
        """
        Run until the machine halts, a breakpoint or watchpoint triggers,
        or max_steps triples have executed.

        A breakpoint at the pc execution resumes from does not trigger
        again, so run() can be called repeatedly to continue.

        Returns:
            StopEvent describing why execution stopped
        """
        if self._halt is not None:
            return self._halt

        executed = 0
        while executed < max_steps:
            if executed and not self.breakpoints.check_pc(self._pc, self._steps):
                return self._stop(self.breakpoints.last_event)

            event = self.step()
            if event is not None:
                return event
            executed += 1

            address, value = self._last_write
            if not self.breakpoints.check_write(address, value, self._pc, self._steps):
                return self._stop(self.breakpoints.last_event)

        return self._stop(StopEvent(StopReason.STEP_LIMIT, self._pc, self._steps))

    def _stop_halted(self, address: int) -> StopEvent:
        self._halt = StopEvent(StopReason.HALTED, self._pc, self._steps, address=address)
        return self._stop(self._halt)

    def _stop(self, event: StopEvent) -> StopEvent:
        logger.debug("stopped: %s", event)
        return event
