from setuptools import setup, find_packages

setup(
    name="admission",
    version="0.1.0",
    packages=find_packages(include=["admission", "admission.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "fastapi>=0.100",
        "starlette",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.24",
        ],
    },
)
