################################################################################
# VSNAP
#
# @file:        setup.py
# @module:      setup
# @description: Setuptools configuration and CLI packaging for vsnap.
# @author:      vsnap contributors
# @repository:  https://github.com/fominv/vsnap
# @version:     0.6.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Two entry points: the host CLI and the worker that runs in the container
# - The worker image only needs this package installed (vsnap-worker entrypoint)
################################################################################

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description (optional)
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="vsnap",
    version="0.6.0",
    description="Snapshot and restore Docker volumes through a worker container",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="vsnap contributors",
    author_email="",
    url="https://github.com/fominv/vsnap",
    project_urls={
        "Source": "https://github.com/fominv/vsnap",
        "Issues": "https://github.com/fominv/vsnap/issues",
    },
    license="MIT",

    packages=find_packages(exclude=("tests*", "docs*", "examples*")),

    include_package_data=True,
    zip_safe=False,

    python_requires=">=3.10",

    install_requires=[
        "typer>=0.12.0",
        "rich>=13.0.0",
        "pydantic>=2.0.0",
        "docker>=7.0.0",
        "zstandard>=0.22.0",
    ],

    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
            "black>=22.0.0",
            "flake8>=4.0.0",
            "mypy>=0.950",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
        ],
    },

    entry_points={
        "console_scripts": [
            # Host CLI (Rich)
            "vsnap=vsnap.cli.main:cli_main",
            # Runs inside the worker container
            "vsnap-worker=vsnap.worker.main:cli_main",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Archiving :: Backup",
        "Topic :: Utilities",
    ],

    keywords="docker volumes snapshot restore backup zstd",
)
