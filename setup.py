#!/usr/bin/env python3
"""
Setup script for the MCP Python Starter server

Installs the capability registry and the starter server as a Python package
with an ``mcp-starter`` console script.
"""

from setuptools import setup, find_packages
import os

# Read the README file for long description
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return "MCP Python Starter: tools, resources and prompts over stdio, streamable HTTP and SSE"

# Read requirements from requirements.txt
def read_requirements():
    requirements_path = os.path.join(os.path.dirname(__file__), 'requirements.txt')
    requirements = []
    if os.path.exists(requirements_path):
        with open(requirements_path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.split('#')[0].strip()
                if line:
                    requirements.append(line)
    return requirements

setup(
    name="mcp-python-starter",
    version="1.0.0",
    description="MCP workshop starter server built on the official Python SDK",
    long_description=read_readme(),
    long_description_content_type="text/markdown",

    # Package configuration
    packages=find_packages(include=["capability_registry", "capability_registry.*",
                                    "starter_server", "starter_server.*"]),
    include_package_data=True,
    python_requires=">=3.10",

    # Dependencies
    install_requires=read_requirements(),

    # Entry points for command-line usage
    entry_points={
        'console_scripts': [
            'mcp-starter=starter_server.main:main',
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    ],

    keywords="mcp model-context-protocol starter workshop tools resources prompts",

    # Extras for optional dependencies
    extras_require={
        'dev': [
            'black>=22.0.0',
            'flake8>=5.0.0',
            'mypy>=1.0.0',
            'pytest>=7.0.0',
            'pytest-asyncio>=0.21.0',
            'pytest-mock>=3.10.0',
        ],
        'test': [
            'pytest>=7.0.0',
            'pytest-asyncio>=0.21.0',
            'pytest-mock>=3.10.0',
        ],
    },

    zip_safe=False,
)
