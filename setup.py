from setuptools import setup, find_packages


setup(
    name="asarfs",
    version="0.1",
    packages=find_packages(include=["asarfs", "asarfs.*"]),
    description="Header index builder and validator for asar archives.",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "asarfs=asarfs.cli:main",
        ]
    },
)
