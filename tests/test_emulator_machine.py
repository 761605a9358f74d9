"""
Machine Unit Tests
==================

Tests for the SUBLEQ reference interpreter: the single instruction, cell
wrapping, out-of-bounds halting, step limits, breakpoints, watchpoints and
reset.
"""

import pytest
from subleq_sdk.assembler import AssemblerConfig, assemble
from subleq_sdk.emulator import DEFAULT_MAX_STEPS, Machine, StopReason
from subleq_sdk.errors import MachineError


# Triple at 0 falls through to 3, triple at 3 jumps back to 0.
# Both subtract into cell 7; cells 6-8 hold data only.
LOOP = [6, 7, 3, 8, 7, 0, 2, 5, 6]


# =============================================================================
# Instruction Tests
# =============================================================================

class TestInstruction:
    """Test the subleq step itself."""

    def test_positive_result_falls_through(self):
        machine = Machine(LOOP)
        assert machine.step() is None
        assert machine.read(7) == 3
        assert machine.pc == 3
        assert machine.steps == 1

    def test_negative_result_branches(self):
        machine = Machine(LOOP)
        machine.step()
        machine.step()
        assert machine.read(7) == -3
        assert machine.pc == 0

    def test_zero_result_branches(self):
        machine = Machine([3, 3, 9, 7], memory_size=12)
        machine.step()
        assert machine.read(3) == 0
        assert machine.pc == 9

    def test_result_wraps(self):
        machine = Machine([3, 4, 0, -128, 127], cell_bits=8)
        machine.step()
        assert machine.read(4) == -1
        assert machine.pc == 0

    def test_image_values_wrap(self):
        machine = Machine([255, 0, 0], cell_bits=8)
        assert machine.read(0) == -1

    def test_self_modifying_code(self):
        """Code and data share one memory."""
        machine = Machine([5, 1, 3, 0, 0, -7], memory_size=6)
        machine.step()
        assert machine.read(1) == 8
        assert machine.pc == 3

    def test_entry(self):
        machine = Machine([0, 0, 0, 0, 0, -1], entry=3)
        assert machine.pc == 3


# =============================================================================
# Halting Tests
# =============================================================================

class TestHalting:
    """Test out-of-bounds halting."""

    def test_jump_to_minus_one_halts(self):
        machine = Machine([0, 0, -1])
        assert machine.step() is None
        event = machine.step()
        assert event.reason == StopReason.HALTED
        assert event.address == -1
        assert machine.halted
        assert machine.steps == 1

    def test_halted_machine_stays_halted(self):
        machine = Machine([0, 0, -1])
        first = machine.run()
        assert machine.step() is first
        assert machine.run() is first

    def test_fetch_past_end(self):
        machine = Machine([0, 0, 3])
        machine.step()
        assert machine.step().reason == StopReason.HALTED

    def test_partial_triple_at_end(self):
        machine = Machine([0, 0, 2, 1])
        machine.step()
        assert machine.pc == 2
        assert machine.step().halted

    def test_operand_out_of_range(self):
        """An illegal A halts before any change."""
        machine = Machine([5, 0, 0])
        event = machine.step()
        assert event.halted
        assert event.address == 5
        assert machine.memory == [5, 0, 0]
        assert machine.steps == 0
        assert machine.pc == 0

    def test_negative_destination(self):
        machine = Machine([0, -2, 0])
        event = machine.step()
        assert event.halted
        assert event.address == -2

    def test_pc_setter_clears_halt(self):
        machine = Machine([0, 0, -1])
        machine.run()
        machine.pc = 0
        assert not machine.halted
        assert machine.step() is None


# =============================================================================
# Run Loop Tests
# =============================================================================

class TestRun:
    """Test run() stop conditions."""

    def test_run_until_halt(self):
        event = Machine([0, 0, -1]).run()
        assert event.reason == StopReason.HALTED
        assert event.steps == 1

    def test_step_limit(self):
        machine = Machine([0, 0, 0])
        event = machine.run(50)
        assert event.reason == StopReason.STEP_LIMIT
        assert event.steps == 50
        assert not machine.halted

    def test_step_limit_resumes(self):
        machine = Machine([0, 0, 0])
        machine.run(50)
        machine.run(25)
        assert machine.steps == 75

    def test_default_limit(self):
        assert DEFAULT_MAX_STEPS == 1_000_000

    def test_breakpoint(self):
        machine = Machine(LOOP)
        machine.breakpoints.add_breakpoint(3)
        event = machine.run()
        assert event.reason == StopReason.BREAKPOINT
        assert event.pc == 3
        assert event.steps == 1

    def test_breakpoint_resume(self):
        """Running again steps off the breakpoint before checking."""
        machine = Machine(LOOP)
        machine.breakpoints.add_breakpoint(3)
        machine.run()
        event = machine.run()
        assert event.reason == StopReason.BREAKPOINT
        assert event.steps == 3

    def test_write_watchpoint(self):
        machine = Machine(LOOP)
        machine.breakpoints.add_write_watchpoint(7)
        event = machine.run()
        assert event.reason == StopReason.WATCHPOINT
        assert event.address == 7
        assert event.value == 3
        assert event.pc == 3
        assert event.steps == 1

    def test_write_watchpoint_resume(self):
        machine = Machine(LOOP)
        machine.breakpoints.add_write_watchpoint(7)
        machine.run()
        event = machine.run()
        assert event.value == -3
        assert event.pc == 0
        assert event.steps == 2


# =============================================================================
# Memory Access Tests
# =============================================================================

class TestMemory:
    """Test memory accessors and construction."""

    def test_padding(self):
        machine = Machine([1, 2, 3], memory_size=10)
        assert machine.memory_size == 10
        assert machine.read(9) == 0
        assert machine.dump(0, 4) == [1, 2, 3, 0]

    def test_dump_clamps(self):
        machine = Machine([1, 2, 3])
        assert machine.dump(-5, 50) == [1, 2, 3]

    def test_memory_is_a_copy(self):
        machine = Machine([1, 2, 3])
        machine.memory[0] = 99
        assert machine.read(0) == 1

    def test_write_wraps(self):
        machine = Machine([0, 0, 0], cell_bits=8)
        machine.write(0, 200)
        assert machine.read(0) == -56

    @pytest.mark.parametrize("address", [-1, 3, 100])
    def test_access_out_of_range(self, address):
        machine = Machine([0, 0, 0])
        with pytest.raises(MachineError):
            machine.read(address)
        with pytest.raises(MachineError):
            machine.write(address, 1)

    def test_memory_smaller_than_image(self):
        with pytest.raises(MachineError, match="smaller"):
            Machine([0, 0, 0, 0], memory_size=3)

    def test_bad_cell_bits(self):
        with pytest.raises(MachineError):
            Machine([0, 0, 0], cell_bits=1)

    def test_reset(self):
        machine = Machine(LOOP)
        machine.run(10)
        machine.reset()
        assert machine.memory == LOOP
        assert machine.pc == 0
        assert machine.steps == 0
        assert not machine.halted

    def test_raw_cells_have_no_temp_fields(self):
        assert Machine([0, 0, -1]).temp_fields == {}


# =============================================================================
# Assembled Program Tests
# =============================================================================

class TestAssembledPrograms:
    """Test running assembler output."""

    def test_temp_field_as_operand(self):
        machine = Machine(assemble("sub [$t], 5\nhlt"))
        machine.run()
        assert machine.temp_fields["$t"] == -5

    def test_image_settings_carry_over(self):
        image = assemble("hlt", config=AssemblerConfig(cell_bits=16))
        machine = Machine(image)
        assert machine.cell_bits == 16
        assert machine.memory_size == len(image)
