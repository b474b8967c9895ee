"""
toposync - Setup Configuration

Synchronization engine that keeps containerlab topology files, their graph
model, live deployment state and an interactive panel session consistent.

License: Apache-2.0
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Core dependencies
core_deps = [
    "pydantic>=2.11.9",
    "pyyaml>=6.0.2",
    "jsonschema>=4.23.0",
    # CLI / Terminal
    "click>=8.1.7",
    "rich>=14.1.0",
]

# Development dependencies
dev_deps = [
    # Testing
    "pytest>=8.4.1",
    "pytest-asyncio>=1.0.0",
    "pytest-mock>=3.14.1",
    "pytest-cov>=6.2.1",
    # Code quality
    "black>=25.0.0",
    "flake8>=7.1.0",
    "mypy>=1.13.0",
]

setup(
    name="toposync",
    version="0.1.0",

    # Package description
    description="Topology document synchronization engine for containerlab labs",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package discovery
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    # Python version requirement
    python_requires=">=3.11",

    # Dependencies
    install_requires=core_deps,

    # Optional dependencies (extras)
    extras_require={
        "dev": dev_deps,
        "test": [
            "pytest>=8.4.1",
            "pytest-asyncio>=1.0.0",
            "pytest-mock>=3.14.1",
            "pytest-cov>=6.2.1",
        ],
    },

    # Entry points
    entry_points={
        "console_scripts": [
            "toposync=toposync.cli:main",
        ],
    },

    # PyPI classifiers
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: System :: Networking",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Framework :: AsyncIO",
    ],

    keywords=[
        "containerlab", "topology", "network-lab", "synchronization",
        "yaml", "graph", "asyncio",
    ],

    license="Apache-2.0",

    include_package_data=True,
    zip_safe=False,
)
