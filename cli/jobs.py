"""
CLI for inspecting and managing a job directory tree.

Every command works directly on the root directory, so it can be used next
to a running API server or on a copy of its data.

Usage:
    # List all jobs, or only the failed ones
    python cli/jobs.py --root data/jobs list
    python cli/jobs.py --root data/jobs list --state failed

    # Status and results of one job
    python cli/jobs.py --root data/jobs status 3
    python cli/jobs.py --root data/jobs read 3 flows.csv
    python cli/jobs.py --root data/jobs zip 3 --names flows.csv costs.csv --zip-name out.zip

    # Run an optimization job and wait for it
    python cli/jobs.py --root data/jobs submit --input '{"nb_flows": 5}'

    # Cleanup
    python cli/jobs.py --root data/jobs delete 3
    python cli/jobs.py --root data/jobs delete-all --yes

    # Config overrides
    python cli/jobs.py --config my.yaml --set session.id_type=uuid list
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cli.utils import confirm_action, format_time, parse_json_arg, parse_key_value_args, print_header
from core.config import load_session_config, parse_cli_overrides
from core.logger import setup_logger
from job_engine.errors import JobEngineError
from job_engine.registry import get_handler
from job_engine.session import JobSession, session_from_config
from job_engine.status import JobState

logger = setup_logger('cli')


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Inspect and manage jobs stored under a root directory',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('--config', type=str, default=None,
                        help='Session config YAML (default: configs/defaults/session.yaml)')
    parser.add_argument('--root', type=str, default=None,
                        help='Root directory of the jobs (overrides config)')
    parser.add_argument('--id-type', type=str, default=None, choices=['string', 'uuid'],
                        help='Id type of the jobs (overrides config)')
    parser.add_argument('--results', type=str, default=None,
                        help='Comma separated result file names (overrides config)')
    parser.add_argument('--set', type=str, action='append', default=None, dest='overrides',
                        help='Config override as key=value, repeatable (e.g. session.max_concurrent_jobs=2)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    list_parser = subparsers.add_parser('list', help='List job ids')
    list_parser.add_argument('--state', type=str, default=None,
                             choices=[s.value for s in JobState],
                             help='Only list started jobs in this state')

    status_parser = subparsers.add_parser('status', help='Show the status of a job')
    status_parser.add_argument('job_id', type=str)

    read_parser = subparsers.add_parser('read', help='Print a file of a job')
    read_parser.add_argument('job_id', type=str)
    read_parser.add_argument('filename', type=str)

    zip_parser = subparsers.add_parser('zip', help='Archive files of a job')
    zip_parser.add_argument('job_id', type=str)
    zip_parser.add_argument('--names', type=str, nargs='*', default=None,
                            help='Files to archive (default: all result files)')
    zip_parser.add_argument('--zip-name', type=str, default=None,
                            help='Archive name (random if omitted)')

    submit_parser = subparsers.add_parser('submit', help='Submit a job and wait for it')
    submit_parser.add_argument('--job-type', type=str, default='optimization')
    submit_parser.add_argument('--input', type=str, default=None,
                               help='Job input as a JSON object')
    submit_parser.add_argument('--id', type=str, default=None, dest='job_id',
                               help='Job id (allocated if omitted)')
    submit_parser.add_argument('--timeout', type=float, default=None,
                               help='Seconds to wait for the job')

    delete_parser = subparsers.add_parser('delete', help='Delete a completed job')
    delete_parser.add_argument('job_id', type=str)

    delete_all_parser = subparsers.add_parser('delete-all', help='Delete all jobs')
    delete_all_parser.add_argument('--yes', action='store_true',
                                   help='Do not ask for confirmation')

    return parser.parse_args(argv)


def build_session(args) -> JobSession:
    """Resolve the config from file, CLI overrides and environment."""
    overrides = parse_cli_overrides(parse_key_value_args(args.overrides or []))
    session_overrides = overrides.setdefault('session', {})
    if args.root:
        session_overrides['root_directory'] = args.root
    if args.id_type:
        session_overrides['id_type'] = args.id_type
    if args.results is not None:
        session_overrides['result_names'] = [n.strip() for n in args.results.split(',') if n.strip()]

    config = load_session_config(args.config, overrides)
    return session_from_config(config)


def print_status(session: JobSession, job_id) -> None:
    status = session.get_status(job_id)
    print(f"id:       {status.job_id}")
    print(f"state:    {status.state.value}")
    print(f"begin:    {status.time_begin}")
    print(f"end:      {status.time_end or '-'}")
    print(f"duration: {format_time(status.duration_seconds)}")
    if status.error:
        print("error:")
        print(status.error.rstrip())


def run_command(args, session: JobSession) -> int:
    """Execute one command; JobEngineError propagates to main()."""
    parse_id = session.paths.allocator.parse_id

    if args.command == 'list':
        ids = session.get_ids_by_state(args.state) if args.state else session.get_all_ids()
        for job_id in sorted(ids, key=str):
            print(job_id)
        logger.info("%d job(s)", len(ids))

    elif args.command == 'status':
        print_status(session, parse_id(args.job_id))

    elif args.command == 'read':
        print(session.read_text(parse_id(args.job_id), args.filename), end='')

    elif args.command == 'zip':
        job_id = parse_id(args.job_id)
        session.get_job_dir(job_id)
        if args.names:
            zip_path = session.get_download_path_zipped(job_id, args.names, args.zip_name)
        else:
            zip_path = session.get_download_path_zipped_all(job_id, args.zip_name)
        print(zip_path)

    elif args.command == 'submit':
        job = get_handler(args.job_type)
        job_input = parse_json_arg(args.input)
        if args.job_id:
            job_id = session.submit_with_id(job, job_input, parse_id(args.job_id))
        else:
            job_id = session.submit_get_id(job, job_input)
        logger.info("Submitted job %s, waiting...", job_id)
        if not session.wait(job_id, args.timeout):
            logger.warning("Job %s still running after %s s", job_id, args.timeout)
            return 2
        print_status(session, job_id)
        return 1 if session.get_status(job_id).is_error else 0

    elif args.command == 'delete':
        session.delete(parse_id(args.job_id))
        logger.info("Deleted job %s", args.job_id)

    elif args.command == 'delete-all':
        count = session.get_nb_jobs()
        if not args.yes and not confirm_action(f"Delete {count} job(s) under {session.root_directory}?", default=False):
            logger.info("Aborted")
            return 1
        session.delete_all()
        logger.info("Deleted %d job(s)", count)

    return 0


def main(argv=None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)

    try:
        session = build_session(args)
    except (ValueError, FileNotFoundError) as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    if args.command in ('status', 'submit'):
        print_header(f"Jobs under {session.root_directory}")

    try:
        return run_command(args, session)
    except JobEngineError as e:
        logger.error("%s", e)
        return 1
    except ValueError as e:
        logger.error("Invalid argument: %s", e)
        return 1


if __name__ == '__main__':
    sys.exit(main())
