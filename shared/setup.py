from setuptools import find_packages, setup

setup(
    name="closet-shared",
    version="0.2.0",
    packages=find_packages(include=["shared", "shared.*"]),
    package_dir={"": "."},
    install_requires=[
        "sqlalchemy>=2.0.0",
        "pydantic>=2.5",
        "loguru>=0.7.0",
    ],
)
