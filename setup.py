from setuptools import find_packages, setup

setup(
    name="securevault",
    version="0.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "fastapi",
        "uvicorn",
        "pydantic",
        "cryptography",
        "requests",
        "urllib3",
        "click",
        "python-multipart",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            "securevault=securevault.cli:cli",
        ],
    },
)
