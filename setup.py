"""Packaging of randgeo"""
from setuptools import find_packages, setup

setup(
    name="randgeo",
    version="0.1.0",
    description="Raster-constrained randomization of point patterns preserving their pairwise distance distributions",
    license="Apache-2.0",
    python_requires=">=3.10",
    packages=find_packages(include=["randgeo", "randgeo.*"]),
    install_requires=[
        "numpy",
        "scipy",
        "pandas",
        "geopandas",
        "geoutils",
        "rasterio",
        "affine>=3.0",
        "pyproj",
        "matplotlib",
        "tqdm",
        "pyyaml",
        "cerberus",
        "argcomplete",
    ],
    extras_require={
        "test": ["pytest", "pytest-xdist"],
    },
    entry_points={
        "console_scripts": [
            "randgeo = randgeo.randgeo_cli:main",
        ],
    },
)
