"""
Setup configuration for the ReRide marketplace API
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="reride-api",
    version="1.0.0",
    author="ReRide Team",
    description="Vehicle marketplace API: listings, plans, payments, chat and admin tooling",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Framework :: FastAPI",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.109.0",
        "uvicorn[standard]>=0.27.0",
        "pydantic>=2.5.3",
        "pydantic-settings>=2.1.0",
        "httpx>=0.26.0",
        "structlog>=24.1.0",
        "slowapi>=0.1.9",
        "mangum>=0.17.0",
        "supabase>=2.3.4",
        "firebase-admin>=6.4.0",
        "pymongo>=4.6.0",
        "PyJWT>=2.8.0",
        "bcrypt>=4.1.2",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "factory-boy>=3.3.0",
        ],
    },
    # Run locally with:
    #   python -m src.marketplace.server
)
