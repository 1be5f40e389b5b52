import os
import re

from setuptools import find_packages, setup

here = os.path.abspath(os.path.dirname(__file__))

with open(os.path.join(here, "copyloader", "__init__.py"), encoding="utf-8") as f:
    version = re.search(r'^__version__ = "([^"]+)"', f.read(), re.M).group(1)

long_description = ""
if os.path.exists(os.path.join(here, "README.md")):
    with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
        long_description = f.read()

setup(
    name="copyloader",
    version=version,
    description="Partition-parallel COPY bulk loader for PostgreSQL and Greenplum",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["copyloader", "copyloader.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "rich>=13.0",
        "pandas>=1.5",
        "numpy>=1.23",
        "SQLAlchemy>=1.4",
        "psycopg2-binary>=2.9",
    ],
    extras_require={
        "parquet": ["pyarrow>=10.0"],
        "test": ["pytest>=7.0", "pytest-cov>=4.0"],
    },
    entry_points={
        "console_scripts": [
            "copyloader=copyloader.cli.main:main",
        ],
    },
)
