# =============================================================================
# test_layout.py - Pass 1 Layout Tests
# =============================================================================
# Tests for address assignment, the entry jump, and placement of the
# literal pool and temp fields.
#
# Test coverage includes:
#   - Fixed expansion sizes per opcode
#   - Label addresses, including trailing labels
#   - Entry jump over leading data
#   - Reserve counts using forward constants
#   - Data directive ranges and strings
#   - Image size bound
# =============================================================================

import pytest
from subleq_sdk.assembler.layout import (
    LayoutResolver,
    data_cells,
    expansion_size,
)
from subleq_sdk.assembler.parser import Directive, parse_source
from subleq_sdk.assembler.symbols import SymbolTable
from subleq_sdk.errors import DirectiveError, MemoryOverflowError


# =============================================================================
# Helper Functions
# =============================================================================

def resolve(source: str, cell_bits: int = 64, **kwargs):
    """Run pass 1; returns (layout, symbols)."""
    symbols = SymbolTable(cell_bits)
    resolver = LayoutResolver(symbols, **kwargs)
    layout = resolver.resolve(parse_source(source, "<test>"))
    return layout, symbols


def directive(source: str) -> Directive:
    return next(s for s in parse_source(source, "<test>") if isinstance(s, Directive))


# =============================================================================
# Expansion Size Tests
# =============================================================================

class TestExpansionSize:
    """Test static triple counts."""

    @pytest.mark.parametrize("source,triples", [
        ("subleq [a], [b], 0", 1),
        ("sub [a], [b]", 1),
        ("hlt", 1),
        ("jmp 0", 1),
        ("mov [a], [b]", 4),
        ("add_c [a], 1", 1),
        ("add_r [a], [b]", 3),
        ("add [a], 1", 1),
        ("add [a], [b]", 3),
        ("add [a], $t", 3),
        ("je [a], [b], 0", 5),
    ])
    def test_sizes(self, source, triples):
        assert expansion_size(parse_source(source)[0]) == triples


# =============================================================================
# Address Assignment Tests
# =============================================================================

class TestAddresses:
    """Test pass 1 address assignment."""

    def test_code_starts_at_zero(self):
        layout, symbols = resolve("start: sub [a], [b]\nnext: mov [a], [b]\na: dq 0\nb: dq 0")
        assert symbols.value_of("start") == 0
        assert symbols.value_of("next") == 3
        assert symbols.value_of("a") == 15
        assert symbols.value_of("b") == 16
        assert layout.items_end == 17

    def test_label_on_its_own_line(self):
        _, symbols = resolve("hlt\nhere:\n\n  hlt")
        assert symbols.value_of("here") == 3

    def test_several_labels_one_item(self):
        layout, symbols = resolve("one:\ntwo: hlt")
        assert symbols.value_of("one") == symbols.value_of("two") == 0
        assert layout.items[0].labels == ["one", "two"]

    def test_trailing_label(self):
        _, symbols = resolve("hlt\nend:")
        assert symbols.value_of("end") == 3

    def test_item_end(self):
        layout, _ = resolve("je [a], [a], 0\na: dq 0")
        assert layout.items[0].end == 15
        assert layout.items[1].address == 15

    def test_constants_take_no_space(self):
        layout, _ = resolve("size equ 4\nhlt")
        assert layout.items_end == 3

    def test_reserve_with_forward_constant(self):
        """Constants are known before any address is assigned."""
        layout, symbols = resolve("hlt\nbuf: resq count * 2\nafter: dq 0\ncount equ 3")
        assert symbols.value_of("after") == 9

    def test_negative_reserve(self):
        with pytest.raises(DirectiveError, match="must not be negative"):
            resolve("resb -1")

    def test_string_size(self):
        layout, _ = resolve('hlt\nmsg: db "abc", 0')
        assert layout.items[1].size == 4


# =============================================================================
# Entry Jump Tests
# =============================================================================

class TestEntryJump:
    """Test the synthetic jump over leading data."""

    def test_leading_data_gets_entry_jump(self):
        layout, symbols = resolve("value: db 5\nstart: hlt")
        entry = layout.items[0]
        assert entry.synthetic
        assert entry.address == 0
        assert entry.statement.opcode == "jmp"
        assert symbols.value_of("value") == 3
        assert symbols.value_of("start") == 4
        # The jump goes to the first code item
        assert entry.statement.operands[0].expression.value == 4

    def test_leading_constant_is_ignored(self):
        layout, _ = resolve("k equ 1\nhlt\nv: dq 0")
        assert not layout.items[0].synthetic

    def test_code_first_has_no_entry_jump(self):
        layout, _ = resolve("hlt\nv: dq 0")
        assert not any(item.synthetic for item in layout.items)

    def test_data_only_has_no_entry_jump(self):
        layout, symbols = resolve("a: dq 1\nb: dq 2")
        assert symbols.value_of("a") == 0
        assert len(layout.items) == 2

    def test_entry_jump_disabled(self):
        layout, symbols = resolve("value: db 5\nhlt", entry_jump=False)
        assert symbols.value_of("value") == 0
        assert not layout.items[0].synthetic


# =============================================================================
# Storage Placement Tests
# =============================================================================

class TestStoragePlacement:
    """Test pool and temp field placement."""

    def test_pool_then_temps(self):
        symbols = SymbolTable()
        resolver = LayoutResolver(symbols)
        layout = resolver.resolve(parse_source("hlt\nhlt"))
        symbols.intern_literal(0)
        symbols.intern_literal(9)
        size = resolver.place_storage(layout)
        assert layout.pool_base == 6
        assert symbols.literals.address_of(9) == 7
        assert layout.temp_base == 8
        assert [symbols.value_of(t) for t in ("$t", "$e", "$r")] == [8, 9, 10]
        assert size == layout.image_size == 11

    def test_items_overflow(self):
        with pytest.raises(MemoryOverflowError) as exc_info:
            resolve("hlt\nhlt", max_image_size=5)
        assert exc_info.value.size == 6
        assert exc_info.value.limit == 5

    def test_pool_and_temps_count_toward_limit(self):
        symbols = SymbolTable()
        resolver = LayoutResolver(symbols, max_image_size=6)
        layout = resolver.resolve(parse_source("hlt"))
        symbols.intern_literal(0)
        with pytest.raises(MemoryOverflowError):
            resolver.place_storage(layout)

    def test_limit_capped_by_cell_width(self):
        """Every address must fit in a cell."""
        with pytest.raises(MemoryOverflowError) as exc_info:
            resolve("buf: resb 100\nmore: resb 100", cell_bits=8, max_image_size=1000)
        assert exc_info.value.limit == 128


# =============================================================================
# Data Directive Tests
# =============================================================================

class TestDataCells:
    """Test encoding of data directives."""

    def test_values(self):
        symbols = SymbolTable()
        assert data_cells(directive("db -16, 255, 'A'"), symbols, 3) == [-16, 255, 65]

    def test_string_bytes(self):
        symbols = SymbolTable()
        assert data_cells(directive('db "hi"'), symbols, 2) == [104, 105]

    def test_utf8_string(self):
        symbols = SymbolTable()
        assert data_cells(directive('db "é"'), symbols, 2) == [0xC3, 0xA9]

    def test_label_value(self):
        symbols = SymbolTable()
        symbols.define_label("target", 42)
        assert data_cells(directive("dq target + 1"), symbols, 1) == [43]

    def test_dollar_is_end_of_directive(self):
        symbols = SymbolTable()
        assert data_cells(directive("dq $, $"), symbols, 12) == [12, 12]

    def test_reserve_is_zeroed(self):
        symbols = SymbolTable()
        assert data_cells(directive("resw 3"), symbols, 3) == [0, 0, 0]

    @pytest.mark.parametrize("source", ["db 256", "db -129", "dw 65536", "dw -32769"])
    def test_out_of_range(self, source):
        with pytest.raises(DirectiveError, match="does not fit"):
            data_cells(directive(source), SymbolTable(), 1)

    @pytest.mark.parametrize("source", ["db -128", "dw 65535", "dd -2147483648"])
    def test_range_edges(self, source):
        assert len(data_cells(directive(source), SymbolTable(), 1)) == 1

    def test_width_wider_than_cell(self):
        with pytest.raises(DirectiveError, match="bits wide"):
            resolve("dd 1", cell_bits=16)
