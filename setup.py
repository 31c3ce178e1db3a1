from setuptools import setup, find_packages
import os
import re

# Function to extract version from version.py
def get_version(module_file):
    """Return package version as listed in `__version__` in `version.py`."""
    # Assumes version.py is at the root relative to setup.py
    version_path = os.path.join(os.path.dirname(__file__), module_file)
    if not os.path.exists(version_path):
        raise RuntimeError(f"Unable to find {module_file} next to setup.py.")

    with open(version_path, 'r', encoding='utf-8') as f:
        version_py = f.read()

    match = re.search("__version__ = ['\"]([^'\"]+)['\"]", version_py)
    if match:
        return match.group(1)
    else:
        raise RuntimeError(f"Unable to find __version__ string in {version_path}")

version = get_version('version.py')

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as f:
    requirements = [line for line in f.read().splitlines() if line and not line.startswith("#")]

setup(
    name="shortsieve",
    version=version,
    author="nclsjn",
    author_email="nclsjn@users.noreply.github.com",
    description="Quota-aware YouTube Shorts search with playability and quality filtering",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/nclsjn/shortsieve",
    py_modules=["config", "exceptions", "logging_config", "models", "utils", "version"],
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
)
