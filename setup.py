from pathlib import Path
from setuptools import setup, find_packages

PROJECT_ROOT = Path(__file__).parent.resolve()
README = PROJECT_ROOT / "README.md"

setup(
    name="cloudproxy-ha",
    version="0.3.0",
    description="Provision a two-node HA Nginx Proxy Manager stack (Galera, Keepalived, Syncthing).",
    long_description=README.read_text(encoding="utf-8") if README.exists() else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "cli-core-yo>=1,<2",
        "pydantic>=2",
        "pyyaml",
        "requests",
        "rich",
        "typer",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "cloudproxy-ha=cloudproxy_ha.cli:main",
        ],
    },
)
