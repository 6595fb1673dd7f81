"""
Setup script for the trajopt-models package.
"""

from setuptools import find_packages, setup

if __name__ == "__main__":
    setup(
        name="trajopt-models",
        version="0.1.0",
        packages=find_packages(exclude=["tests", "tests.*"]),
        python_requires=">=3.9",
        install_requires=[
            "numpy>=1.21.0",
            "scipy>=1.7.0",
            "jax>=0.4.0",
        ],
        extras_require={
            "dev": [
                "pytest>=7.0",
                "pytest-cov>=4.0",
            ],
        },
        author="Trajectory Optimization Project Team",
        description="Dynamics models, quadrature and derivative machinery for trajectory optimization",
        long_description=open("README.md").read(),  # noqa: SIM115
        long_description_content_type="text/markdown",
        license="MIT",
        classifiers=[
            "Development Status :: 4 - Beta",
            "Intended Audience :: Science/Research",
            "License :: OSI Approved :: MIT License",
            "Programming Language :: Python :: 3",
            "Topic :: Scientific/Engineering",
        ],
    )
