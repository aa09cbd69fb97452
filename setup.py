"""
Setup configuration for Window State Daemon.

Per-application window geometry persistence for i3/Sway.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read requirements
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = requirements_file.read_text().strip().split("\n") if requirements_file.exists() else []

# Read long description from README if it exists
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="window-state-daemon",
    version="1.0.0",
    description="Remember and restore per-application window size, position and workspace on i3/Sway",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="NixOS Configuration Team",
    author_email="",
    packages=find_packages(include=["window_state_daemon", "window_state_daemon.*"]),
    install_requires=requirements,
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "window-state-daemon=window_state_daemon.daemon:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
        ],
        "systemd": [
            "systemd-python>=234",
        ],
    },
)
