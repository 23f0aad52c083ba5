"""
Setup for the polysddp Python package.

polysddp implements Stochastic Dual Dynamic Programming (SDDP) on top of a
small algebraic LP/MIP/QP model layer backed by scipy (HiGHS).

Install for development:
    pip install -e ".[dev]"
"""

from setuptools import find_packages, setup

setup(
    name="polysddp",
    version="0.1.0",
    description="Stochastic Dual Dynamic Programming with polyhedral value functions",
    package_dir={"": "python"},
    packages=find_packages(where="python"),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "scipy>=1.9",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "hypothesis>=6.0",
            "black>=23.0",
            "ruff>=0.1.0",
            "mypy>=1.0",
        ],
    },
)
