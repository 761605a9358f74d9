"""
SUBLEQ Reference Interpreter
============================

Executes program images produced by the assembler. The interpreter is
both the runtime for SUBLEQ programs and the oracle the test suite uses to
check that every macro expansion has the net effect it promises.

- **Machine**: memory, pc, stepping and run loop
- **Debugging**: PC breakpoints and write watchpoints
- **StopEvent**: why run() returned (halted, step limit, breakpoint,
  watchpoint)

Quick Start
-----------

    >>> from subleq_sdk.assembler import assemble
    >>> from subleq_sdk.emulator import Machine, StopReason
    >>> machine = Machine(assemble("sub [$t], 5\\nhlt"))
    >>> machine.run().reason
    <StopReason.HALTED: 1>
    >>> machine.temp_fields["$t"]
    -5
"""

from .machine import Machine, DEFAULT_MAX_STEPS
from .breakpoints import BreakpointManager, StopEvent, StopReason

__all__ = [
    "Machine",
    "DEFAULT_MAX_STEPS",
    "BreakpointManager",
    "StopEvent",
    "StopReason",
]
