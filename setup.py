from setuptools import setup, find_packages

setup(
    name="toolbridge",
    version="0.1.0",
    description="Client for long-lived tool worker processes speaking line-delimited JSON-RPC",
    license="MIT",
    packages=find_packages(include=["toolbridge", "toolbridge.*"]),
    install_requires=[
        "typer>=0.9.0",
        "rich>=13.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "toolbridge=toolbridge.main:toolbridge",
        ],
    },
    python_requires=">=3.10",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
)
