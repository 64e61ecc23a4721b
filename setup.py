"""
Setup script for doomless.

doomless turns topic text into short, deduplicated facts and a handful of
multiple-choice quizzes using a small local language model:

1. Model Provisioning - cache check, bundled seed, download with progress
2. Fact Extraction - chunked extraction with reformat and sentence fallback
3. Quiz Generation - batched, tolerant of malformed model output

The local model runtime is optional (``pip install doomless[local-ai]``);
without it the pipeline runs in sentence-fallback mode.
"""

from setuptools import find_packages, setup

setup(
    name="doomless",
    version="0.3.0",
    description="Offline fact extraction and quiz generation with local language models",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy[asyncio]>=2.0.0",
        "aiosqlite>=0.19.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
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
        "local-ai": [
            "ollama>=0.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "doomless=doomless.cli:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="learning quiz facts llm offline ollama",
)
