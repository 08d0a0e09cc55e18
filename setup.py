"""
graspreach Setup Configuration

This file configures the installation of graspreach with its CLI entrypoint.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

# Read requirements
requirements = [
    "numpy>=1.19.0",
    "scipy>=1.7.0",
    "pybullet>=3.0.0",
    "matplotlib>=3.3.0",
    "pyyaml>=5.4.0",
    "python-dotenv>=0.19.0",
    "requests>=2.25.0",
    "open3d>=0.15.0",
]

setup(
    name="graspreach",
    version="0.1.0",
    author="graspreach developers",
    description="Reachability and collision filtering of grasp candidates for robot arms",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Robotics",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=6.0",
            "pytest-cov>=2.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "graspreach=graspreach.cli:main",
        ],
    },
    include_package_data=True,
    package_data={
        "graspreach": [
            "config/*.yaml",
        ],
    },
    zip_safe=False,
    keywords=[
        "robotics",
        "grasping",
        "inverse-kinematics",
        "point-cloud",
        "pybullet",
        "manipulation",
    ],
)
