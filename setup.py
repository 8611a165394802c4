from setuptools import setup, find_packages

setup(
    name="forward-multiplicity",
    version="1.0.0",
    description="Per-event forward charged-particle multiplicity pipeline",
    author="Forward Analysis Team",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "numpy>=1.24.0",
        "pandas>=2.0.0",
        "matplotlib>=3.7.0",
        "openpyxl>=3.1.0",
        "pyyaml>=6.0",
        "pydantic>=2.0.0",
        "tqdm>=4.65.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "forward-mult=forward_mult.cli:main",
        ],
    },
    python_requires=">=3.9",
)
