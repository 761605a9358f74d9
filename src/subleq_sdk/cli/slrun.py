"""
slrun - SUBLEQ Interpreter Command-Line Interface
=================================================

Runs a SUBLEQ program on the reference interpreter. The input is either
assembly source (assembled on the fly) or an image written by slasm in the
``words`` or ``json`` format.

Usage Examples
--------------
Run a source file:
    $ slrun count.sasm

Run an image with extra zeroed memory and dump some cells:
    $ slrun count.words --memory-size 256 --dump 30:32

Stop at a breakpoint:
    $ slrun count.sasm --break loop --max-steps 1000

Exit status is 0 when the program halts (or stops at a breakpoint or
watchpoint) and 4 when it is still running after --max-steps.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from subleq_sdk import __version__
from subleq_sdk.assembler import Assembler, AssemblerConfig, ProgramImage, read_image
from subleq_sdk.cli.errors import ExitCode, handle_cli_exception, parse_define
from subleq_sdk.emulator import Machine, StopReason, DEFAULT_MAX_STEPS


IMAGE_SUFFIXES = (".words", ".json")


def resolve_address(text: str, image: ProgramImage) -> int:
    """Turn an integer or a symbol name into an address."""
    text = text.strip()
    if text in image.symbols:
        return image.symbols[text]
    try:
        return int(text, 0)
    except ValueError:
        raise click.BadParameter(f"'{text}' is neither an address nor a known symbol") from None


def parse_range(text: str, image: ProgramImage) -> tuple[int, int]:
    """Parse START:END (END exclusive) or a single address."""
    if ":" not in text:
        start = resolve_address(text, image)
        return start, start + 1
    start, end = text.split(":", 1)
    return resolve_address(start, image), resolve_address(end, image)


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-n", "--max-steps",
    type=click.IntRange(min=0),
    default=DEFAULT_MAX_STEPS,
    show_default=True,
    help="Stop after this many triples",
)
@click.option(
    "-m", "--memory-size",
    type=click.IntRange(min=1),
    default=None,
    help="Total memory cells (default: image size)",
)
@click.option(
    "-d", "--dump",
    multiple=True,
    help="Print cells START:END after the run (addresses or symbols; repeatable)",
)
@click.option(
    "-b", "--break", "breakpoints",
    multiple=True,
    help="Stop when pc reaches ADDRESS or symbol (repeatable)",
)
@click.option(
    "-w", "--watch",
    multiple=True,
    help="Stop after a write to ADDRESS or symbol (repeatable)",
)
@click.option(
    "-D", "--define",
    multiple=True,
    help="Define constant when assembling source (format: NAME=VALUE)",
)
@click.option(
    "--cell-bits",
    type=click.IntRange(min=2),
    default=None,
    help="Cell width (default: 64, or the width stored in a JSON image)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="slrun")
def main(
    input_file: Path,
    max_steps: int,
    memory_size: Optional[int],
    dump: tuple[str, ...],
    breakpoints: tuple[str, ...],
    watch: tuple[str, ...],
    define: tuple[str, ...],
    cell_bits: Optional[int],
    verbose: bool,
) -> None:
    """
    Run a SUBLEQ program.

    INPUT_FILE is assembly source or an image (.words or .json).
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        if input_file.suffix.lower() in IMAGE_SUFFIXES:
            image = read_image(input_file)
            if cell_bits is not None:
                image.cell_bits = cell_bits
        else:
            asm = Assembler(AssemblerConfig(cell_bits=cell_bits or 64))
            for defn in define:
                asm.define_symbol(*parse_define(defn))
            image = asm.assemble_file(input_file)

        machine = Machine(image, memory_size=memory_size)
        for text in breakpoints:
            machine.breakpoints.add_breakpoint(resolve_address(text, image))
        for text in watch:
            machine.breakpoints.add_write_watchpoint(resolve_address(text, image))
        ranges = [parse_range(text, image) for text in dump]

        if verbose:
            click.echo(f"Loaded {image.size} cells, memory {machine.memory_size} cells")

        event = machine.run(max_steps)

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Run")

    click.echo(str(event))
    click.echo(f"steps: {machine.steps}  pc: {machine.pc}")

    temps = machine.temp_fields
    if temps:
        click.echo("  ".join(f"{name}={value}" for name, value in temps.items()))

    for start, end in ranges:
        for address, value in enumerate(machine.dump(start, end), max(start, 0)):
            click.echo(f"{address:6d}: {value}")

    if event.reason == StopReason.STEP_LIMIT:
        sys.exit(ExitCode.STEP_LIMIT)


if __name__ == "__main__":
    main()
