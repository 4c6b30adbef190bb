"""Setup script for fieldlogger."""

from setuptools import find_packages, setup

setup(
    name="fieldlogger",
    version="0.1.0",
    description="Amateur radio logger for POTA activations, Field Day and Winter Field Day",
    python_requires=">=3.11",
    packages=find_packages(include=["fieldlogger", "fieldlogger.*"]),
    install_requires=[
        "sqlmodel>=0.0.16,<0.1",
        "SQLAlchemy>=2.0,<3",
        "platformdirs>=3.0",
        "typer>=0.9",
        "rich>=13.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "fieldlogger=fieldlogger.cli:main",
        ],
    },
    zip_safe=False,
)
