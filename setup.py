from pathlib import Path

from setuptools import find_packages
from setuptools import setup


HERE = Path(__file__).resolve().parent


def get_long_description():
    readme = HERE / "README.md"
    if readme.exists():
        return readme.read_text(encoding="utf-8")
    return ""


setup(
    name="hnytrace",
    version="0.1.0",
    description="Honeycomb trace exporter",
    long_description=get_long_description(),
    long_description_content_type="text/markdown",
    license="Apache-2.0",
    packages=find_packages(exclude=["tests*"]),
    package_data={
        "hnytrace": ["py.typed"],
    },
    zip_safe=False,
    python_requires=">=3.8",
    install_requires=[
        "envier~=0.6.1",
        "opentelemetry-api>=1",
        "opentelemetry-sdk>=1",
    ],
    extras_require={
        "simplejson": ["simplejson"],
        "test": [
            "pytest",
            "mock",
            "hypothesis",
        ],
    },
    classifiers=[
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
    ],
)
