# setup.py
from setuptools import setup, find_packages

setup(
    name="conduit_db",
    version="0.1.0",
    description="Relational persistence engine: query builder, schema migrations and active-record models",
    author="Swift Fox",
    packages=find_packages(
        exclude=(
            "tests",
            "tests.*",
            "docs",
            "migrations",
            "build",
            "dist",
        )
    ),
    install_requires=[
        "psycopg2-binary>=2.9",
        "PyMySQL>=1.1",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    python_requires=">=3.10",
)
