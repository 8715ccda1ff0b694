"""Setup script for vcd-client package."""
from pathlib import Path
from setuptools import setup, find_packages

# Read long description from README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="vcd-client",
    use_scm_version={"fallback_version": "1.0.0"},
    setup_requires=["setuptools_scm"],
    description="Async client for the VMware Cloud Director OpenAPI and XML APIs",
    packages=find_packages(exclude=["tests*", "dev*"]),
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.27",
        "pydantic>=2.5",
        "python-dotenv>=1.0",
        "packaging>=23.0",
        "lxml>=5.0",
        "python-dateutil>=2.8",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    long_description=long_description,
    long_description_content_type="text/markdown",
)
