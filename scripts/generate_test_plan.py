#!/usr/bin/env python3
"""
Generate an abstract test plan class from a state machine model.

Usage:
    python generate_test_plan.py <model.sm|model.yaml> [--output-dir <dir>] [--name <name>]
                                 [--parallel] [--strict] [--validate-only] [--stdout]

Example:
    python generate_test_plan.py models/door.sm --output-dir tests/generated
    python generate_test_plan.py models/door.yaml --validate-only
"""

import argparse
import sys
from pathlib import Path
from typing import Callable, Optional, Tuple

# Add scripts directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from sm_errors import TestPlanError
from sm_loader import load_model
from sm_validate import validate_graph
from stub_registry import sanitize
from graph_expander import GenerationResult, generate_test_plan
from plan_emitter import generate_python


def output_filename(model_name: str) -> str:
    return f"{sanitize(model_name).lower()}_test_plan.py"


def generate_file(model_path: Path, output_dir: Path, name: Optional[str] = None,
                  parallel: bool = False,
                  on_report: Optional[Callable[[str], None]] = None) -> Tuple[Path, GenerationResult]:
    """Load a model, generate its test plan and write it into output_dir."""
    graph = load_model(model_path, name)
    result = generate_test_plan(graph, parallel=parallel, on_report=on_report)

    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / output_filename(graph.name)
    generate_python(result, source=model_path.name, output_path=output_path)
    return output_path, result


def validate_file(model_path: Path, name: Optional[str] = None) -> int:
    """Print structural problems of a model. Returns the error count."""
    graph = load_model(model_path, name)
    result = validate_graph(graph)

    for line in result.report_lines(model_path):
        print(line)

    if result.errors or result.warnings:
        print(f"\n{len(result.errors)} error(s), {len(result.warnings)} warning(s)")
    return len(result.errors)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate an abstract test plan class from a state machine model"
    )
    parser.add_argument("model", help="State machine model (.sm or .yaml)")
    parser.add_argument("--output-dir", help="Output directory (default: next to the model)")
    parser.add_argument("--name", help="State machine name (default: from the model)")
    parser.add_argument("--parallel", action="store_true", help="Expand branches concurrently")
    parser.add_argument("--strict", action="store_true", help="Exit with an error if any diagnostic is reported")
    parser.add_argument("--validate-only", action="store_true", help="Only check the model structure")
    parser.add_argument("--stdout", action="store_true", help="Print the generated code instead of writing a file")

    args = parser.parse_args(argv)

    model_path = Path(args.model)
    if not model_path.exists():
        print(f"Error: Model not found: {model_path}", file=sys.stderr)
        sys.exit(1)

    def report(message: str):
        print(f"{model_path}: warning: {message}", file=sys.stderr)

    try:
        if args.validate_only:
            errors = validate_file(model_path, args.name)
            sys.exit(1 if errors else 0)

        if args.stdout:
            graph = load_model(model_path, args.name)
            result = generate_test_plan(graph, parallel=args.parallel, on_report=report)
            print(generate_python(result, source=model_path.name))
        else:
            output_dir = Path(args.output_dir) if args.output_dir else model_path.parent
            output_path, result = generate_file(model_path, output_dir, args.name,
                                                parallel=args.parallel, on_report=report)
            print(f"Generated: {output_path} ({len(result.plans)} plan(s), {len(result.stubs)} stub(s))")
    except TestPlanError as e:
        print(f"Error: {model_path}: {e}", file=sys.stderr)
        sys.exit(1)

    if args.strict and len(result.diagnostics):
        print(f"{len(result.diagnostics)} diagnostic(s) reported", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
