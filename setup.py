from setuptools import setup

setup(
    name="webprobe",
    packages=["webprobe"],
    version="0.1.0",
    description="A checker service which probes a monitor's URL on request and reports status changes and telemetry",
    author="Hugh Cole-Baker",
    license="BSD",
    author_email="sigmaris@gmail.com",
    url='https://github.com/sigmaris/webprobe',
    python_requires=">=3.8",
    install_requires=[
        'iso8601 ~= 2.1',
        "psycopg2-binary ~= 2.9",
        "kafka-python ~= 2.0",
        "tabulate ~= 0.9",
        "fastapi >= 0.110",
        "pydantic >= 2.6, < 3",
        "uvicorn >= 0.29",
    ],
    extras_require={
        "dev": [
            "pytest >= 7.4",
            "pytest-cov >= 4.1",
            "pytest-httpserver >= 1.0",
            "pytest-postgresql >= 5.0",
            "httpx >= 0.25",
        ]
    },
    entry_points={
        "console_scripts": [
            "webprobe-checker=webprobe.server:run_checker_app",
            "webprobe-status=webprobe.status_store:run_status_app",
        ],
    },
)
