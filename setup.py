from setuptools import find_packages, setup

setup(
    name="dirconlab",
    version="0.1.0",
    description="Hybrid DIRCON trajectory optimization for constrained mechanical systems",
    author="DirconLab Authors",
    packages=find_packages(include=["dirconlab", "dirconlab.*"]),
    install_requires=[
        "numpy>=1.23.0",
        "scipy>=1.9.0",
        "casadi>=3.6.0",  # CasADi is used for the optimization backend
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Mathematics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    keywords="trajectory optimization, direct collocation, hybrid systems, contact, DIRCON",
)
