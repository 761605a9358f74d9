"""
slasm - SUBLEQ Assembler Command-Line Interface
===============================================

This module implements the command-line interface for the SUBLEQ
assembler.

Usage Examples
--------------
Basic assembly:
    $ slasm count.sasm

With output file and format:
    $ slasm count.sasm -o count.json -f json

Generate all output files:
    $ slasm count.sasm -o count.words -l count.lst -s count.sym

With defines and a narrower cell:
    $ slasm -D LIMIT=10 --cell-bits 16 count.sasm

Verbose mode:
    $ slasm -v count.sasm
"""

import logging
from pathlib import Path
from typing import Optional

import click

from subleq_sdk import __version__
from subleq_sdk.assembler import Assembler, AssemblerConfig, FORMATS
from subleq_sdk.cli.errors import handle_cli_exception, parse_define


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output image file (default: input.words)",
)
@click.option(
    "-f", "--format", "fmt",
    type=click.Choice(FORMATS, case_sensitive=False),
    default=None,
    help="Output format (default: from the output suffix, else words)",
)
@click.option(
    "-l", "--listing",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate listing file",
)
@click.option(
    "-s", "--symbols",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate symbol file",
)
@click.option(
    "-D", "--define",
    multiple=True,
    help="Define constant (format: NAME=VALUE)",
)
@click.option(
    "--cell-bits",
    type=click.IntRange(min=2),
    default=64,
    show_default=True,
    help="Width of every memory cell in bits",
)
@click.option(
    "--max-size",
    type=click.IntRange(min=1),
    default=65536,
    show_default=True,
    help="Largest image in cells, including literal pool and temp fields",
)
@click.option(
    "--strict-overflow",
    is_flag=True,
    help="Reject expression results that do not fit a cell instead of wrapping",
)
@click.option(
    "--no-entry-jump",
    is_flag=True,
    help="Do not prepend a jump over leading data",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="slasm")
def main(
    input_file: Path,
    output: Optional[Path],
    fmt: Optional[str],
    listing: Optional[Path],
    symbols: Optional[Path],
    define: tuple[str, ...],
    cell_bits: int,
    max_size: int,
    strict_overflow: bool,
    no_entry_jump: bool,
    verbose: bool,
) -> None:
    """
    Assemble SUBLEQ source code into a program image.

    INPUT_FILE is the assembly source file (.sasm) to assemble.

    \b
    Examples:
        slasm count.sasm                 # Outputs count.words
        slasm count.sasm -o count.json   # JSON image
        slasm -D LIMIT=10 count.sasm     # Define constant
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    config = AssemblerConfig(
        cell_bits=cell_bits,
        max_image_size=max_size,
        strict_overflow=strict_overflow,
        entry_jump=not no_entry_jump,
    )
    output_file = output if output is not None else input_file.with_suffix(".words")

    try:
        asm = Assembler(config)
        for defn in define:
            asm.define_symbol(*parse_define(defn))

        image = asm.assemble_file(input_file)
        asm.write_image(output_file, fmt.lower() if fmt else None)

        if listing:
            asm.write_listing(listing)
        if symbols:
            asm.write_symbols(symbols)

        if verbose:
            click.echo(f"Wrote {image.size} cells to {output_file}")
            click.echo(f"Virtual literals: {len(image.pool)}, symbols: {len(image.symbols)}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
