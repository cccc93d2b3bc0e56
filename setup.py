"""Setup script for lingosub."""

from setuptools import setup, find_packages
import os

# Read version from __init__.py
version = {}
with open(os.path.join("lingosub", "__init__.py")) as f:
    for line in f:
        if line.startswith("__version__"):
            exec(line, version)
            break

# Read README for long description
with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="lingosub",
    version=version.get("__version__", "0.1.0"),
    author="Your Name",
    author_email="your.email@example.com",
    description="Progressive subtitle generation for long media files with pluggable ASR backends",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/lingosub",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Multimedia :: Sound/Audio :: Speech",
    ],
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24.0",
        "scipy>=1.10.0",
        "requests>=2.31.0",
        "google-genai>=1.0.0",
        "ffmpeg-python>=0.2.0",
        "soundfile>=0.12.0",
    ],
    extras_require={
        # Note: PyTorch is NOT pinned to a build here - users should install it
        # separately to choose between CPU and CUDA versions
        "local": [
            "torch>=2.0.0",
            "gigaam",
        ],
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "hypothesis>=6.82.0",
        ],
    },
)
