"""
BizDash setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="bizdash",
    version="1.0.0",
    description="BizDash — Session gating and role-based access for the business dashboard",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "bizdash=bizdash.cli:main",
        ],
    },
    install_requires=[
        "reflex>=0.6.0",
        "pydantic>=2.5",
        "redis>=5.0",
        "pyyaml>=6.0",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)
