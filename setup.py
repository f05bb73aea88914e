"""Setup script for PromptFitter package."""

from setuptools import setup, find_packages
import pathlib

# Get the long description from the README file
here = pathlib.Path(__file__).parent.resolve()
long_description = (here / "README.md").read_text(encoding="utf-8") if (here / "README.md").exists() else "PromptFitter: fit prompt trees for large language models into token budgets."

setup(
    name="prompt-fitter",
    version="0.1.0",
    description="Priority-based prompt fitting for large language models under token budgets",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="PromptFitter Team",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="llm, prompt, context, token-budgeting, prompt-caching, ai",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9, <4",
    install_requires=[
        "PyYAML>=6.0",
        "tiktoken>=0.4.0",
        "loguru>=0.7.0",
        "pydantic>=2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "pytest-cov>=2.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
)
