"""
cispsig: Setup configuration.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="cispsig",
    version="0.1.0",
    author="cispsig Team",
    description="Cross-validated cisplatin-sensitivity gene-expression signatures from GDSC cell lines",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/your-org/cispsig",
    packages=find_packages(exclude=["tests", "tests.*", "scripts", "scripts.*"]),
    py_modules=["main"],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
    ],
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.24.0",
        "pandas>=2.0.0",
        "scipy>=1.10.0",
        "scikit-learn>=1.2.0",
        "statsmodels>=0.14.0",
        "tqdm>=4.65.0",
        "requests>=2.28.0",
        "h5py>=3.8.0",
        "openpyxl>=3.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.3.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cispsig=main:main",
        ],
    },
)
