"""
Setup script for pedagogy-engine.

The pedagogy engine helps educators plan, deliver and assess lessons. It
owns the skill graphs, learner and group records, and the dependency
inference; LLM reasoning runs in an external agent runtime that the API
relays to over WebSockets.

The 'pedagogy' command is the CLI entry point; 'main.py' runs the API.
"""

from setuptools import find_packages, setup

setup(
    name="pedagogy-engine",
    version="0.1.0",
    description="Skill-graph reasoning, learner records and agent relay for lesson planning",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config", "main"],
    python_requires=">=3.10",
    install_requires=[
        # API
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Agent definition frontmatter
        "pyyaml>=6.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pedagogy=src.cli.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Framework :: FastAPI",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="education lesson-planning skill-graph assessment",
)
