from setuptools import setup, find_packages

setup(
    name="logguard",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        line.strip()
        for line in open("requirements.txt")
        if line.strip() and not line.startswith("#")
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "fastapi>=0.110.0",
            "python-multipart>=0.0.9",
        ],
    },
    entry_points={
        "console_scripts": [
            "logguard=logguard.cli:main",
        ],
    },
    author="Billy & Team",
    description="Anomaly review and triage for LogGuard log analysis",
    python_requires=">=3.9",
)
