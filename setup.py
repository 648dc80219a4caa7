#!/usr/bin/env python3
"""
Setup script for Kestrel framework.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="kestrel",
    version="1.0.0",
    description="Small MVC web framework with Blade-style views and active record models",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Kestrel Contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        "demo": [
            "resources/views/*/*.blade.html",
            "database/migrations/*.py",
        ],
    },
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "uvicorn>=0.30.0",
        "python-dotenv>=1.0.0",
        "jinja2>=3.1.0",
        "markupsafe>=2.1.0",
        "cryptography>=41.0.0",
        "argon2-cffi>=23.1.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "kestrel=kestrel.cli.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
        "Topic :: Software Development :: Libraries :: Application Frameworks",
    ],
    keywords="web framework mvc asgi templates orm",
)
