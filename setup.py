from __future__ import annotations

import runpy
from pathlib import Path

from setuptools import find_packages, setup

_VERSION = runpy.run_path(str(Path(__file__).parent / "nestconf" / "version.py"))

if __name__ == "__main__":
    setup(
        name="nestconf",
        version=_VERSION["PROJECT_VERSION"],
        python_requires=_VERSION["PYTHON_REQUIRES_SPECIFIER"],
        packages=find_packages(include=["nestconf", "nestconf.*"]),
        install_requires=[
            "annotated-types>=0.6",
            "fastapi>=0.110",
            "loguru>=0.7",
            "pydantic>=2.6,<3",
            "python-dotenv>=1.0",
            "tomli-w>=1.0",
        ],
        extras_require={
            "test": [
                "httpx>=0.27",
                "hypothesis>=6.100",
                "pytest>=8.0",
            ],
        },
        entry_points={
            "console_scripts": ["nestconf-config=nestconf.config_manager:main"],
        },
    )
