"""
Setup script for backwards compatibility.

Modern installations should use pyproject.toml.
This file is for older pip versions.
"""

from setuptools import setup

# Configuration is in pyproject.toml
# This file is just for backwards compatibility
setup()
