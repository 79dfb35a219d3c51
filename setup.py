"""Setup script for the mqtt-gateway package."""

from setuptools import find_packages, setup

setup(
    name="mqtt-gateway",
    version="0.1.0",
    description="MQTT telemetry gateway writing device readings to time-series databases",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pymysql",
        "pyyaml",
        "python-dotenv",
        "paho-mqtt>=2.0.0",
        "aiohttp",
        "psycopg2-binary",
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
            "mqtt-gateway=mqtt_gateway:main",
        ],
    },
)
