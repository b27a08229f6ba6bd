#!/usr/bin/env python3
"""
squeeze_pdf.py - Rasterize-and-recompress PDF CLI.

PHILOSOPHY: Render every page, crush it to JPEG, rebuild the PDF.

Usage:
    python squeeze_pdf.py input.pdf -o output.pdf
    python squeeze_pdf.py input.pdf -q 0.5 -s 1.0
    python squeeze_pdf.py *.pdf --output-dir ./compressed/
"""

import argparse
import logging
import sys
import threading
from pathlib import Path

from pdf_squeeze.cancellation import CancellationToken
from pdf_squeeze.config import (
    DEFAULT_QUALITY,
    DEFAULT_SCALE,
    MAX_DIMENSION,
    CompressionOptions,
    LoaderOptions,
)
from pdf_squeeze.pipeline import compress_file


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Shrink PDFs by rasterizing every page to JPEG.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python squeeze_pdf.py report.pdf -o small.pdf
  python squeeze_pdf.py report.pdf -q 0.5 -s 1.0
  python squeeze_pdf.py *.pdf --output-dir ./out/

The output PDF will be:
  - Fully rasterized (no selectable text, vectors, fonts or layers)
  - One JPEG per page, no page larger than --max-dimension pixels
"""
    )

    parser.add_argument(
        "input",
        nargs="+",
        type=Path,
        help="Input PDF file(s)"
    )

    output = parser.add_mutually_exclusive_group()
    output.add_argument(
        "-o", "--output",
        type=Path,
        help="Output file (single input only)"
    )
    output.add_argument(
        "--output-dir",
        type=Path,
        help="Output directory (for multiple files)"
    )

    parser.add_argument(
        "-q", "--quality",
        type=float,
        default=DEFAULT_QUALITY,
        help=f"JPEG quality 0-1, clamped (default: {DEFAULT_QUALITY})"
    )

    parser.add_argument(
        "-s", "--scale",
        type=float,
        default=DEFAULT_SCALE,
        help=f"Render scale before size capping (default: {DEFAULT_SCALE})"
    )

    parser.add_argument(
        "--max-dimension",
        type=int,
        default=MAX_DIMENSION,
        help=f"Largest rendered page side in pixels (default: {MAX_DIMENSION})"
    )

    parser.add_argument(
        "-g", "--gray",
        action="store_true",
        help="Store effectively gray pages as grayscale JPEG"
    )

    parser.add_argument(
        "--password",
        help="Password for encrypted inputs"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Cancel a file's compression after this many seconds"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    return parser.parse_args(argv)


def print_progress(percent: int):
    """Print progress bar."""
    width = 40
    filled = int(width * percent / 100)
    bar = "=" * filled + "-" * (width - filled)
    print(f"\r[{bar}] {percent:3d}%", end="", file=sys.stderr)
    if percent >= 100:
        print(file=sys.stderr)


def run_one(input_path: Path, output_path: Path, args):
    """Compress one file, honoring --timeout."""
    options = CompressionOptions(
        quality=args.quality,
        scale=args.scale,
        on_progress=print_progress,
        max_dimension=args.max_dimension,
        detect_grayscale=args.gray
    )
    token = CancellationToken()
    timer = None
    if args.timeout:
        timer = threading.Timer(
            args.timeout, token.cancel, args=(f"Timed out after {args.timeout}s",)
        )
        timer.daemon = True
        timer.start()

    try:
        return compress_file(
            input_path,
            output_path,
            options,
            loader_options=LoaderOptions(password=args.password),
            cancel_token=token
        )
    finally:
        if timer is not None:
            timer.cancel()


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose)

    # Validate inputs
    valid_inputs = []
    for p in args.input:
        if not p.exists():
            print(f"Error: File not found: {p}", file=sys.stderr)
            continue
        if p.suffix.lower() != ".pdf":
            print(f"Warning: Skipping non-PDF: {p}", file=sys.stderr)
            continue
        valid_inputs.append(p)

    if not valid_inputs:
        print("Error: No valid PDF files", file=sys.stderr)
        return 1

    # Determine output
    if len(valid_inputs) > 1:
        if args.output:
            print("Error: Use --output-dir for multiple files", file=sys.stderr)
            return 1
        if not args.output_dir:
            args.output_dir = Path(".")

    # Process single file
    if len(valid_inputs) == 1 and not args.output_dir:
        input_path = valid_inputs[0]
        output_path = args.output or input_path.with_name(input_path.stem + "_compressed.pdf")

        result = run_one(input_path, output_path, args)

        if result.success:
            print(f"\n{result.summary()}")
            return 0
        print(f"\nError: {result.error}", file=sys.stderr)
        return 1

    # Batch processing
    args.output_dir.mkdir(parents=True, exist_ok=True)

    total_in = 0
    total_out = 0
    successes = 0

    for i, input_path in enumerate(valid_inputs):
        output_path = args.output_dir / f"{input_path.stem}_compressed.pdf"
        print(f"\n[{i+1}/{len(valid_inputs)}] {input_path.name}")

        result = run_one(input_path, output_path, args)

        total_in += result.input_size
        if result.success:
            total_out += result.output_size
            successes += 1
        else:
            print(f"\nError: {result.error}", file=sys.stderr)

    print(f"\n{'='*50}")
    print(f"Batch complete: {successes}/{len(valid_inputs)} files")
    print(f"Total: {total_in:,} -> {total_out:,} bytes")
    if total_in > 0:
        print(f"Reduction: {(1 - total_out/total_in)*100:.1f}%")

    return 0 if successes == len(valid_inputs) else 1


if __name__ == "__main__":
    sys.exit(main())
