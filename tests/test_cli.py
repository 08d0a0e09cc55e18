#!/usr/bin/env python3
"""
Unit tests for the graspreach command line
"""

import io
import json
import tempfile
import unittest
import sys
from pathlib import Path
from unittest.mock import patch

import numpy as np
import yaml

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from graspreach.cli import (
    EXIT_CONFIG_ERROR, EXIT_ERROR, EXIT_OK, build_ik_gateway, create_parser, main
)
from graspreach.control.ik_gateway import AnalyticIKGateway
from graspreach.control.service_ik import ServiceIKGateway
from graspreach.core.planner_config import ConfigurationError

GRASPS = [
    {"center": [0.5, 0.0, 0.3], "approach": [-1.0, 0.0, 0.0], "axis": [0.0, 1.0, 0.0], "width": 0.05},
    {"center": [0.5, 0.2, 0.3], "approach": [-1.0, 0.0, 0.0], "axis": [0.0, 1.0, 0.0], "width": 0.12},
]


class FakeSettings:
    ik_service_url = None
    ik_service_timeout = 1.0
    config_path = None
    n_workers = 1
    log_file = None
    log_level = "INFO"


class TestParser(unittest.TestCase):
    """Test cases for argument parsing."""

    def test_select_defaults(self):
        """Test select defaults to the pybullet solver."""
        args = create_parser().parse_args(["select", "--candidates", "g.json", "--cloud", "c.npy"])
        self.assertEqual(args.command, "select")
        self.assertEqual(args.solver, "pybullet")
        self.assertEqual(args.urdf, "kuka_iiwa/model.urdf")
        self.assertIsNone(args.output)

    def test_command_required(self):
        """Test a subcommand must be given."""
        with self.assertRaises(SystemExit):
            create_parser().parse_args([])

    def test_service_solver_needs_url(self):
        """Test the service solver without a URL is a configuration error."""
        args = create_parser().parse_args(
            ["select", "--candidates", "g.json", "--cloud", "c.npy", "--solver", "service"]
        )
        with self.assertRaises(ConfigurationError):
            build_ik_gateway(args, FakeSettings())

    def test_service_solver(self):
        """Test the service solver is built from the URL option."""
        args = create_parser().parse_args([
            "select", "--candidates", "g.json", "--cloud", "c.npy", "--solver", "service",
            "--service-url", "http://ik.local/compute_ik", "--group", "left_arm", "--last-joint", "6",
        ])
        gateway = build_ik_gateway(args, FakeSettings())
        self.assertIsInstance(gateway, ServiceIKGateway)
        self.assertEqual(gateway.group_name, "left_arm")
        self.assertEqual(gateway.last_joint_index, 6)
        gateway.close()


class TestCommands(unittest.TestCase):
    """Test cases for running commands."""

    def setUp(self):
        """Set up test fixtures."""
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_check_config_valid(self):
        """Test a valid configuration file passes."""
        path = self.dir / "planner.yaml"
        path.write_text(yaml.safe_dump({"planner": {"standoff": 0.1}}))
        with patch("sys.stdout", new_callable=io.StringIO) as stdout:
            self.assertEqual(main(["check-config", str(path)]), EXIT_OK)
        self.assertEqual(json.loads(stdout.getvalue())["standoff"], 0.1)

    def test_check_config_invalid(self):
        """Test an invalid configuration file is reported."""
        path = self.dir / "planner.yaml"
        path.write_text(yaml.safe_dump({"min_aperture": 0.2, "max_aperture": 0.1}))
        self.assertEqual(main(["check-config", str(path)]), EXIT_CONFIG_ERROR)

    def test_check_config_missing_file(self):
        """Test a missing file is an error."""
        self.assertEqual(main(["check-config", str(self.dir / "missing.yaml")]), EXIT_ERROR)

    def test_select(self):
        """Test selection end to end with a stand-in solver."""
        candidates = self.dir / "grasps.json"
        candidates.write_text(json.dumps(GRASPS))
        cloud = self.dir / "cloud.npy"
        np.save(cloud, np.array([[0.9, 0.9, 0.9]]))
        config = self.dir / "planner.yaml"
        config.write_text(yaml.safe_dump({
            "workspace": [0.0, 1.0, -1.0, 1.0, 0.0, 1.0],
            "min_aperture": 0.02,
            "max_aperture": 0.08,
        }))
        output = self.dir / "selected.json"

        gateway = AnalyticIKGateway(lambda position, quat: [0.0] * 7)
        with patch("graspreach.cli.build_ik_gateway", return_value=gateway):
            code = main([
                "-q", "select", "--candidates", str(candidates), "--cloud", str(cloud),
                "--config", str(config), "--output", str(output), "--workers", "2",
            ])

        self.assertEqual(code, EXIT_OK)
        data = json.loads(output.read_text())
        self.assertEqual(len(data["grasps"]), 2)
        self.assertEqual({g["candidate_index"] for g in data["grasps"]}, {0})
        self.assertEqual(data["stats"]["aperture_rejected"], 1)


if __name__ == '__main__':
    unittest.main()
