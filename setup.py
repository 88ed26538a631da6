from setuptools import find_packages, setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="ormcache",
    version="0.1.0",
    author="",
    author_email="",
    description="A read-through/write-through cache for SQLAlchemy models with query invalidation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Intended Audience :: Developers",
        "Framework :: AsyncIO",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.8",
    install_requires=[
        "msgspec>=0.18.0",
        "SQLAlchemy[asyncio]>=2.0.0",
    ],
    extras_require={
        # Optional Redis support (redis.asyncio)
        "redis": ["redis>=5.0.1"],
        # All backends
        "all": ["redis>=5.0.1"],
        # Test dependencies
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "freezegun>=1.2.0",
            "aiosqlite>=0.19.0",
            "redis>=5.0.1",
        ],
        # Development dependencies
        "dev": [
            "black>=23.0.0",
            "isort>=5.0.0",
            "mypy>=1.0.0"
        ],
    },
)
