from setuptools import setup, find_packages

setup(
    name="entrysim",
    version="0.3.0",
    description="Near-duplicate detection for feed entries using TF-IDF cosine similarity",
    author="Entrysim contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.24.0",
        "python-dateutil>=2.8.0",
        "rich>=13.0.0",
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0.0"],
    },
    entry_points={
        "console_scripts": [
            "entrysim=entrysim.cli:main",
        ],
    },
    python_requires=">=3.9",
)
