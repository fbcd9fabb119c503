from setuptools import find_packages, setup

setup(
    name="ml-examples",
    version="0.1",
    package_dir={"": "src"},
    packages=find_packages("src", exclude=["tests", "tests.*"]),
    py_modules=[
        "cleanup",
        "data",
        "exception",
        "exec",
        "main",
        "metrics",
        "plotting",
        "progress",
        "train",
        "utils",
        "validation",
    ],
    python_requires=">=3.9",
    install_requires=[
        "humanize",
        "matplotlib",
        "numpy",
        "pandas",
        "requests",
        "tensorboard",
        "tensorflow",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "ml-examples=main:main",
        ],
    },
)
