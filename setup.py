"""Setup script for the netatmo-collector package."""

from setuptools import find_packages, setup

setup(
    name="netatmo-collector",
    version="0.1.0",
    description="Gather Netatmo weather station readings and store them in InfluxDB",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pyyaml",
        "python-dotenv",
        "aiohttp",
        "influxdb-client[async]",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-asyncio",
            "black",
            "isort",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "netatmo-collector=netatmo_collector:main",
        ],
    },
)
