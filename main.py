import argparse
import logging
import sys

import config
from cleanup_ports import reset_cluster
from errors import BootstrapError, ProcessLaunchError
from launcher import ProcessLauncher
from params import derive
from start_cluster import start_cluster
from sweep import run_sweep
from validator import validate

logger = logging.getLogger("frugalos-bootstrap")


def add_topology_args(parser):
    parser.add_argument('--server-count', type=int,
                        help=f'Nodes to add after the seed (default: $SERVER_COUNT or {config.DEFAULT_SERVER_COUNT})')
    parser.add_argument('--device-count', type=int,
                        help=f'Devices per node (default: $DEVICE_COUNT or {config.DEFAULT_DEVICE_COUNT})')
    parser.add_argument('--tolerable-faults', type=int,
                        help='Override the derived tolerable faults (default: $TOLERABLE_FAULTS)')
    parser.add_argument('--data-fragments', type=int,
                        help='Override the derived data fragments (default: $DATA_FRAGMENTS)')


def add_port_args(parser):
    parser.add_argument('--rpc-port', type=int, default=config.RPC_PORT,
                        help='RPC port of the seed; joiner i uses rpc-port + i (default: %(default)s)')
    parser.add_argument('--http-port', type=int, default=config.HTTP_PORT,
                        help='HTTP port of the seed; joiner i uses http-port + i (default: %(default)s)')


def create_parser():
    parser = argparse.ArgumentParser(
        description="Bootstrap a local frugalos cluster",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s params --server-count 8           # Show derived redundancy parameters
  %(prog)s bootstrap --server-count 4        # Seed plus 4 joiners
  %(prog)s sweep                             # Smoke-test --loglevel / --max_concurrent_logs
  %(prog)s reset                             # Kill leftover nodes and clear data dirs
        """
    )
    parser.add_argument('--debug', action='store_true', help='Enable debug output')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    params_parser = subparsers.add_parser('params', help='Print the derived cluster topology')
    add_topology_args(params_parser)

    bootstrap_parser = subparsers.add_parser('bootstrap', help='Create the seed and join the remaining nodes')
    add_topology_args(bootstrap_parser)
    add_port_args(bootstrap_parser)
    bootstrap_parser.add_argument('--binary', default=config.FRUGALOS_BIN,
                                  help='Path to the frugalos binary (default: %(default)s)')
    bootstrap_parser.add_argument('--work-dir', default=config.WORK_DIR,
                                  help='Working directory for node data and logs (default: %(default)s)')
    bootstrap_parser.add_argument('--host', default=config.HOST,
                                  help='Address every node binds to (default: %(default)s)')
    bootstrap_parser.add_argument('--start-flags', default=config.START_FLAGS,
                                  help='Extra flags for `frugalos start` (default: %(default)s)')
    bootstrap_parser.add_argument('--no-stage', action='store_true',
                                  help='Run the binary in place instead of copying it to <work-dir>/bin')
    bootstrap_parser.add_argument('--no-http-check', action='store_true',
                                  help='Only check that start processes stay alive, not that HTTP is up')
    bootstrap_parser.add_argument('--readiness-timeout', type=float, default=config.READINESS_TIMEOUT,
                                  help='Seconds to poll for readiness after each fixed delay (default: %(default)s)')

    sweep_parser = subparsers.add_parser('sweep', help='Run `create` across every loglevel / max_concurrent_logs pair')
    sweep_parser.add_argument('--binary', default=config.FRUGALOS_BIN,
                              help='Path to the frugalos binary (default: %(default)s)')
    sweep_parser.add_argument('--work-dir', default=config.SWEEP_WORK_DIR,
                              help='Working directory for trial data (default: %(default)s)')

    reset_parser = subparsers.add_parser('reset', help='Tear down a previous run')
    reset_parser.add_argument('--work-dir', default=config.WORK_DIR)
    reset_parser.add_argument('--server-count', type=int)
    add_port_args(reset_parser)

    return parser


ENV_DEFAULTS = (
    ('server_count', 'SERVER_COUNT', config.DEFAULT_SERVER_COUNT),
    ('device_count', 'DEVICE_COUNT', config.DEFAULT_DEVICE_COUNT),
    ('tolerable_faults', 'TOLERABLE_FAULTS', None),
    ('data_fragments', 'DATA_FRAGMENTS', None),
)


def fill_env_defaults(args):
    """Options left off the command line fall back to the environment, then to config."""
    for attr, env_name, default in ENV_DEFAULTS:
        if hasattr(args, attr) and getattr(args, attr) is None:
            setattr(args, attr, config.env_int(env_name, default))
    return args


def topology_from_args(args):
    return validate(derive(args.server_count, args.device_count, args.tolerable_faults, args.data_fragments))


def run_command(args):
    if args.command == 'params':
        topology = topology_from_args(args)
        for key, value in topology.to_dict().items():
            print(f"{key}={value}")

    elif args.command == 'bootstrap':
        topology = topology_from_args(args)
        handles = start_cluster(
            topology, args.binary, args.work_dir,
            stage=not args.no_stage,
            host=args.host,
            rpc_port=args.rpc_port,
            http_port=args.http_port,
            start_flags=args.start_flags,
            wait_for_http=not args.no_http_check,
            readiness_timeout=args.readiness_timeout,
        )
        print("\nCluster is running!")
        for handle in handles:
            print(f"   - {handle.node_id}: pid {handle.pid}, log {handle.log_path}")

    elif args.command == 'sweep':
        count = run_sweep(ProcessLauncher(args.binary, args.work_dir), args.work_dir)
        print(f"{count} trials passed")

    elif args.command == 'reset':
        reset_cluster(args.work_dir, args.server_count, args.rpc_port, args.http_port)


def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        run_command(fill_env_defaults(args))
    except ProcessLaunchError as e:
        logger.error(str(e))
        if e.output:
            sys.stderr.write(e.output if e.output.endswith("\n") else e.output + "\n")
        return e.exit_status
    except BootstrapError as e:
        logger.error(str(e))
        return e.exit_status
    return 0


if __name__ == '__main__':
    sys.exit(main())
