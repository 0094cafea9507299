#!/usr/bin/env python3
"""CLI for Snapshot Report."""

import argparse
import json
import logging
import sys
from pathlib import Path

import core
from snapshot_report.config import load_config, parse_jobs
from snapshot_report.errors import InvalidInputError, SnapshotReportError
from snapshot_report.models import TestStatus
from snapshot_report.project_inspector import inspect_project
from snapshot_report.reporting import OutputFormat

LOG_FORMAT = '[snapshot-report] %(levelname)s: %(message)s'


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT
    )


def parse_metadata(pairs) -> dict:
    """Turn repeated ``KEY=VALUE`` arguments into a dict."""
    metadata = {}
    for pair in pairs or []:
        if '=' not in pair:
            raise InvalidInputError(f"Metadata must be KEY=VALUE, got {pair!r}")
        key, value = pair.split('=', 1)
        if not key.strip():
            raise InvalidInputError(f"Metadata key is empty in {pair!r}")
        metadata[key.strip()] = value
    return metadata


def cmd_generate(args):
    """Merge inputs and write the requested report formats."""
    settings = load_config(Path(args.config) if args.config else None)

    formats = OutputFormat.parse_list(args.format if args.format else settings.formats)
    output = Path(args.output) if args.output else settings.output
    html_template = Path(args.html_template) if args.html_template else settings.html_template
    jobs = args.jobs if args.jobs is not None else settings.jobs
    odiff = args.odiff if args.odiff is not None else settings.odiff

    metadata = dict(settings.metadata)
    metadata.update(parse_metadata(args.metadata))

    result = core.generate(
        files=args.input or [],
        directories=args.input_dir or [],
        formats=formats,
        output_directory=output,
        html_template=html_template,
        name=args.name or settings.name,
        metadata=metadata,
        odiff=odiff,
        max_workers=jobs,
    )

    names = ", ".join(fmt.value for fmt in result["outputs"])
    print(f"Generated report ({names}) at {output}")
    return 0


def cmd_summary(args):
    """Print totals and failed tests for the merged inputs."""
    settings = load_config(Path(args.config) if args.config else None)
    jobs = args.jobs if args.jobs is not None else settings.jobs

    paths = core.resolve_inputs(args.input or [], args.input_dir or [])
    report = core.build_report(paths, name=args.name or settings.name, max_workers=jobs)
    summary = report.summary
    failed_tests = [(suite.name, t) for suite in report.suites for t in suite.tests
                    if t.status == TestStatus.FAILED]

    if args.format == 'json':
        output = {
            "name": report.name,
            "summary": summary.to_dict(),
            "failed": [{"suite": s, "name": t.name, "message": t.failure.message if t.failure else ""}
                       for s, t in failed_tests],
        }
        print(json.dumps(output, indent=2))
    else:
        print(f"\n{'='*60}")
        print(f"Report: {report.name}")
        print(f"  Total:   {summary.total}")
        print(f"  Passed:  {summary.passed}")
        print(f"  Failed:  {summary.failed}")
        print(f"  Skipped: {summary.skipped}")
        print(f"  Duration: {summary.duration:.3f}s")

        if failed_tests:
            print(f"\nFailed Tests ({len(failed_tests)}):")
            for suite_name, test in failed_tests[:20]:
                print(f"  - {suite_name}.{test.name}")
            if len(failed_tests) > 20:
                print(f"  ... and {len(failed_tests) - 20} more")
        print(f"{'='*60}\n")

    return 1 if summary.failed else 0


def cmd_inspect(args):
    """Inspect an Xcode project for snapshot test targets."""
    result = inspect_project(Path(args.project))
    print(result.formatted_report(gitlab=args.gitlab))
    return 0


def _jobs(value: str) -> int:
    try:
        return parse_jobs(value)
    except InvalidInputError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _add_input_arguments(p):
    p.add_argument('--input', '-i', action='append', metavar='PATH',
                   help='Report JSON file or .xcresult bundle (repeatable)')
    p.add_argument('--input-dir', action='append', metavar='DIR',
                   help='Directory scanned recursively for report JSON files and .xcresult bundles (repeatable)')
    p.add_argument('--name', help='Name of the merged report')
    p.add_argument('--jobs', '-j', type=_jobs, help='Maximum parallel workers (default: CPU count)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='snapshot-report',
                                     description='Merge snapshot test results into JSON, JUnit and HTML reports')
    parser.add_argument('-v', '--verbose', action='store_true')

    sub = parser.add_subparsers(dest='command')

    p = sub.add_parser('generate', help='Generate reports from JSON reports and .xcresult bundles')
    _add_input_arguments(p)
    p.add_argument('--format', '-f', help='Comma separated formats: json, junit (or xml), html')
    p.add_argument('--output', '-o', help='Output directory (default: ./snapshot-report-output)')
    p.add_argument('--html-template', help='Custom Jinja2 template for the HTML report')
    p.add_argument('--odiff', nargs='?', const='odiff', metavar='PATH',
                   help='Add odiff images to failed snapshot tests (default binary: odiff)')
    p.add_argument('--metadata', action='append', metavar='KEY=VALUE',
                   help='Report metadata entry (repeatable)')
    p.add_argument('--config', help='YAML config file (default: ./.snapshot-report.yml)')

    p = sub.add_parser('summary', help='Print a summary of the merged inputs')
    _add_input_arguments(p)
    p.add_argument('--format', '-f', choices=['text', 'json'], default='text')
    p.add_argument('--config', help='YAML config file (default: ./.snapshot-report.yml)')

    p = sub.add_parser('inspect', help='Inspect an Xcode project for snapshot test targets')
    p.add_argument('--project', '-p', required=True, help='Path to .xcodeproj')
    p.add_argument('--gitlab', action='store_true', help='Include a GitLab CI snippet for scheduled runs')

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    cmds = {
        'generate': cmd_generate,
        'summary': cmd_summary,
        'inspect': cmd_inspect,
    }
    try:
        return cmds[args.command](args)
    except (SnapshotReportError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
