#!/usr/bin/env python3
"""
graspreach Command-Line Interface

Subcommands:
- graspreach select: Select reachable, collision-free grasps
- graspreach check-config: Validate a planner configuration file
"""

import argparse
import json
import logging
import sys
import uuid
from typing import List, Optional

from .core.config import get_settings
from .core.grasp_io import load_candidates, save_scored_grasps, scored_grasps_to_dicts
from .core.logging_utils import configure_logging, set_request_context
from .core.planner_config import ConfigurationError, PlannerConfig

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """
    Create the main argument parser with subcommands.

    Returns:
        Configured ArgumentParser with subcommands
    """
    parser = argparse.ArgumentParser(
        prog='graspreach',
        description='Select reachable, collision-free grasps for a robot arm',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  graspreach select --candidates grasps.json --cloud scene.pcd --config planner.yaml
  graspreach select --candidates grasps.yaml --cloud scene.npy --solver service \\
      --service-url http://localhost:8080/compute_ik --output selected.json
  graspreach check-config planner.yaml
        """
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress non-essential output'
    )

    subparsers = parser.add_subparsers(
        title='Commands',
        dest='command',
        help='Available commands',
        required=True
    )

    add_select_command(subparsers)
    add_check_config_command(subparsers)

    return parser


def add_select_command(subparsers):
    """Add the 'select' subcommand."""
    select_parser = subparsers.add_parser(
        'select',
        help='Select feasible grasps',
        description='Filter grasp candidates by workspace, aperture, IK and collisions'
    )

    select_parser.add_argument('--candidates', required=True, help='Grasp candidates (JSON or YAML)')
    select_parser.add_argument('--cloud', required=True, help='Point cloud (.npy, .npz, .xyz, .txt, .csv, .pcd, .ply)')
    select_parser.add_argument('--config', help='Planner configuration (YAML or JSON)')
    select_parser.add_argument('--workers', type=int, help='Candidates evaluated in parallel')

    solver_group = select_parser.add_argument_group('IK Solver Options')
    solver_group.add_argument(
        '--solver',
        choices=['pybullet', 'service'],
        default='pybullet',
        help='IK solver backend (default: pybullet)'
    )
    solver_group.add_argument('--urdf', default='kuka_iiwa/model.urdf', help='Robot URDF for the pybullet solver')
    solver_group.add_argument('--ee-link', help='End-effector link name or index for the pybullet solver')
    solver_group.add_argument('--service-url', help='IK service endpoint for the service solver')
    solver_group.add_argument('--group', default='manipulator', help='Planning group sent to the IK service')
    solver_group.add_argument('--ik-link', default='', help='IK link name sent to the IK service')
    solver_group.add_argument('--first-joint', type=int, default=0, help='First reported joint index')
    solver_group.add_argument('--last-joint', type=int, help='Last reported joint index (inclusive)')

    output_group = select_parser.add_argument_group('Output Options')
    output_group.add_argument('--output', '-o', help='Write selected grasps to this JSON file')
    output_group.add_argument('--plot', help='Save a 3D plot of the selection to this image file')
    output_group.add_argument('--event-log', help='Append JSON-lines selection events to this file')


def add_check_config_command(subparsers):
    """Add the 'check-config' subcommand."""
    check_parser = subparsers.add_parser(
        'check-config',
        help='Validate a planner configuration file'
    )
    check_parser.add_argument('config', help='Planner configuration (YAML or JSON)')


def build_ik_gateway(args, settings):
    """Instantiate the IK gateway selected on the command line."""
    if args.solver == 'service':
        from .control.service_ik import ServiceIKGateway

        url = args.service_url or settings.ik_service_url
        if not url:
            raise ConfigurationError(
                "The service solver needs --service-url or GRASPREACH_IK_SERVICE_URL"
            )
        return ServiceIKGateway(
            url,
            group_name=args.group,
            ik_link_name=args.ik_link,
            request_timeout=settings.ik_service_timeout,
            first_joint_index=args.first_joint,
            last_joint_index=args.last_joint,
        )

    from .control.pybullet_ik import PyBulletIKGateway

    ee_link = args.ee_link
    if ee_link is not None and ee_link.isdigit():
        ee_link = int(ee_link)
    return PyBulletIKGateway(
        urdf_path=args.urdf,
        ee_link=ee_link,
        first_joint_index=args.first_joint,
        last_joint_index=args.last_joint,
    )


def load_planner_config(path: Optional[str], settings) -> PlannerConfig:
    path = path or settings.config_path
    config = PlannerConfig.from_file(path) if path else PlannerConfig()
    if config.n_workers == 1 and settings.n_workers > 1:
        config.n_workers = settings.n_workers
    return config


def handle_select_command(args) -> int:
    """Run grasp selection and report the result."""
    from .core.planner import ReachabilityPlanner
    from .vision.point_cloud import load_point_cloud

    settings = get_settings()
    set_request_context(uuid.uuid4().hex[:8], args.event_log or settings.log_file)

    config = load_planner_config(args.config, settings)
    if args.workers is not None:
        config.n_workers = args.workers
    if args.verbose:
        config.verbose = True
    config.validate()

    candidates = load_candidates(args.candidates)
    cloud = load_point_cloud(args.cloud)

    with build_ik_gateway(args, settings) as gateway:
        planner = ReachabilityPlanner(config, gateway)
        result = planner.plan(candidates, cloud)

    if args.output:
        save_scored_grasps(result.grasps, args.output, stats=result.stats.to_dict())
    else:
        json.dump({"grasps": scored_grasps_to_dicts(result.grasps)}, sys.stdout, indent=2)
        sys.stdout.write("\n")

    if args.plot:
        from .ui.grasp_plot import plot_selection
        plot_selection(cloud, result.grasps, workspace=config.workspace, output_path=args.plot)

    if not args.quiet:
        logger.info(
            f"Selected {len(result.grasps)} grasps from {len(candidates)} candidates "
            f"in {result.elapsed:.2f}s"
        )
    return EXIT_OK


def handle_check_config_command(args) -> int:
    """Validate a planner configuration file."""
    config = PlannerConfig.from_file(args.config).validate()
    print(json.dumps(config.to_dict(), indent=2))
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.verbose:
        level = "DEBUG"
    elif args.quiet:
        level = "WARNING"
    else:
        level = settings.log_level
    configure_logging(level)

    try:
        if args.command == 'select':
            return handle_select_command(args)
        elif args.command == 'check-config':
            return handle_check_config_command(args)

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return EXIT_INTERRUPTED
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR
    except Exception as e:
        logger.error(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return EXIT_ERROR

    return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
