from setuptools import setup, find_namespace_packages
from pathlib import Path

# ---------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------

PROJECT_NAME = "shield-ai"
VERSION = "1.0.0"
DESCRIPTION = (
    "SHIELD AI: interactive AI assistant for security review and "
    "line-range fixing of source files"
)
LICENSE = "MIT"

# ---------------------------------------------------------------------
# Long description (README)
# ---------------------------------------------------------------------

this_dir = Path(__file__).parent
readme_path = this_dir / "README.md"

long_description = (
    readme_path.read_text(encoding="utf-8")
    if readme_path.exists()
    else DESCRIPTION
)

# ---------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------

requirements_path = this_dir / "requirements.txt"
if requirements_path.exists():
    install_requires = [
        line.strip()
        for line in requirements_path.read_text(encoding="utf-8").splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]
else:
    install_requires = []

# ---------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------

setup(
    name=PROJECT_NAME,
    version=VERSION,
    description=DESCRIPTION,
    long_description=long_description,
    long_description_content_type="text/markdown",
    license=LICENSE,

    packages=find_namespace_packages(include=("shield_ai", "shield_ai.*")),
    package_data={
        "shield_ai.schemas": ["*.json"],
        "shield_ai.prompts": ["*.yaml"],
    },
    include_package_data=True,

    install_requires=install_requires,
    extras_require={
        "test": ["pytest>=7"],
    },

    python_requires=">=3.10",

    entry_points={
        "console_scripts": [
            "shield-ai=shield_ai.cli:main",
        ]
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Topic :: Security",
        "Topic :: Software Development :: Quality Assurance",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],

    keywords=[
        "security",
        "code review",
        "llm",
        "cli",
    ],
)
