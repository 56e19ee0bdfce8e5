"""CLI entry point for scanning and running inline tests."""

import argparse
import json
import logging
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any

from inline_test.config import ScanConfig
from inline_test.config_loader import load_config
from inline_test.models.report import Failure, ScanOutcome
from inline_test.registry import DefinitionError, Registry
from inline_test.scanner import Scanner
from inline_test.syntax import SourceIndex

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

STATUS_SYMBOLS = {
    "passed": "✅",
    "failed": "❌",
    "error": "❗",
}


@dataclass(frozen=True, kw_only=True)
class FileOutcome:
    """Scan outcome of one file, with the text its spans point into."""

    path: str
    text: str
    outcome: ScanOutcome

    @cached_property
    def index(self) -> SourceIndex:
        return SourceIndex(self.text)

    def location(self, failure: Failure) -> str:
        """Render a failure's span as ``path:line:column``."""
        if failure.span is None:
            return self.path
        line, column = self.index.position(failure.span.start)
        return f"{self.path}:{line}:{column + 1}"


def collect_paths(paths: Sequence[Path], include: Sequence[str]) -> Sequence[Path]:
    """Expand directories into the files matching ``include``, sorted."""
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            matched = {file for pattern in include for file in path.rglob(pattern)}
            files.extend(sorted(file for file in matched if file.is_file()))
        else:
            files.append(path)
    return files


def log_results_summary(
    log: logging.Logger,
    file_outcomes: Sequence[FileOutcome],
    named_runs: Mapping[str, Sequence[Failure]],
) -> None:
    """Log a formatted summary of failures with their source locations."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for file_outcome in file_outcomes:
        outcome = file_outcome.outcome
        symbol = STATUS_SYMBOLS["passed" if outcome.ok else "failed"]
        log.info(
            "%s %s: %d passed, %d failed",
            symbol,
            file_outcome.path,
            outcome.passed,
            len(outcome.results),
        )
        for result in outcome.results:
            log.info("  %s %s", STATUS_SYMBOLS["failed"], result.test_name)
            for failure in result.failures:
                log.info("    %s: %s", file_outcome.location(failure), failure.message)
        for failure in outcome.dependency_failures:
            log.info(
                "  %s %s: %s",
                STATUS_SYMBOLS["error"],
                file_outcome.location(failure),
                failure.message,
            )
        if (failure := outcome.parse_failure) is not None:
            log.info(
                "  %s %s: %s",
                STATUS_SYMBOLS["error"],
                file_outcome.location(failure),
                failure.message,
            )

    for name, failures in named_runs.items():
        symbol = STATUS_SYMBOLS["failed" if failures else "passed"]
        log.info("%s %s: %d failure(s)", symbol, name, len(failures))
        for failure in failures:
            log.info("  Message: %s", failure.message)


def _failure_output(
    failure: Failure, file_outcome: FileOutcome | None
) -> dict[str, Any]:
    output: dict[str, Any] = {"message": failure.message, "span": None}
    if failure.span is not None:
        output["span"] = {"start": failure.span.start, "end": failure.span.end}
        if file_outcome is not None:
            output["location"] = file_outcome.location(failure)
    return output


def format_output(
    file_outcomes: Sequence[FileOutcome],
    named_runs: Mapping[str, Sequence[Failure]],
) -> dict[str, Any]:
    """Format scan and run outcomes for JSON output."""
    results: list[dict[str, Any]] = []
    total = passed = errors = 0

    for file_outcome in file_outcomes:
        outcome = file_outcome.outcome
        total += outcome.attempted
        passed += outcome.passed
        for result in outcome.results:
            results.append(
                {
                    "file": file_outcome.path,
                    "test": result.test_name,
                    "status": "failed",
                    "failures": [
                        _failure_output(f, file_outcome) for f in result.failures
                    ],
                }
            )
        problems = list(outcome.dependency_failures)
        if outcome.parse_failure is not None:
            problems.append(outcome.parse_failure)
        for failure in problems:
            errors += 1
            results.append(
                {
                    "file": file_outcome.path,
                    "test": None,
                    "status": "error",
                    "failures": [_failure_output(failure, file_outcome)],
                }
            )

    for name, failures in named_runs.items():
        total += 1
        if not failures:
            passed += 1
            continue
        results.append(
            {
                "file": None,
                "test": name,
                "status": "failed",
                "failures": [_failure_output(f, None) for f in failures],
            }
        )

    return {
        "total": total,
        "passed": passed,
        "failed": total - passed,
        "errors": errors,
        "results": results,
    }


def format_listing(registry: Registry) -> dict[str, Any]:
    """Format the registered entries for JSON output."""
    entries = [
        {"name": entry.name, "kind": entry.kind.value, "doc": entry.doc}
        for entry in registry
    ]
    return {"total": len(entries), "entries": entries}


def run(
    paths: Sequence[Path],
    config: ScanConfig,
    names: Sequence[str] = (),
    list_only: bool = False,
) -> int:
    """Scan files, run the named entries and return an exit code."""
    log = logging.getLogger("inline_test")

    registry = Registry()
    scanner = Scanner.from_config(registry, config)

    file_outcomes: list[FileOutcome] = []
    for path in collect_paths(paths, config.include):
        log.info("Scanning %s", path)
        text = path.read_text(encoding="utf-8")
        outcome = scanner.scan(text, filename=str(path))
        file_outcomes.append(FileOutcome(path=str(path), text=text, outcome=outcome))

    if list_only:
        print(json.dumps(format_listing(registry), indent=2))
        return 0

    named_runs: dict[str, Sequence[Failure]] = {}
    for name in names:
        log.info("Running %s", name)
        named_runs[name] = scanner.executor.run(name)

    log_results_summary(log, file_outcomes, named_runs)

    output = format_output(file_outcomes, named_runs)
    print(json.dumps(output, indent=2))

    return 1 if output["failed"] or output["errors"] else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Discover and run tests declared inline in Python source"
    )
    parser.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="Files or directories to scan",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML configuration file",
    )
    parser.add_argument(
        "--run",
        dest="names",
        action="append",
        default=[],
        help="Run a test or group by name after scanning (repeatable)",
    )
    parser.add_argument(
        "--list",
        dest="list_only",
        action="store_true",
        help="List the discovered tests instead of reporting results",
    )

    args = parser.parse_args()
    log = logging.getLogger("inline_test")

    try:
        config = load_config(args.config) if args.config else ScanConfig()
    except (ValueError, OSError) as e:
        logging.basicConfig(format=LOG_FORMAT, stream=sys.stderr)
        log.error("%s", e)
        sys.exit(2)

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT, stream=sys.stderr)

    try:
        exit_code = run(
            paths=args.paths,
            config=config,
            names=args.names,
            list_only=args.list_only,
        )
    except (DefinitionError, OSError) as e:
        log.error("%s", e)
        exit_code = 2
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
