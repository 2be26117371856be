from setuptools import find_packages, setup

setup(
    name="chromever",
    version="0.1.0",
    description="Install, launch and switch between Chrome versions",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.10",
    install_requires=[
        "requests",
        "aiohttp",
        "aiofiles",
        "rich",
        "PyYAML",
        "platformdirs",
    ],
    extras_require={
        "test": [
            "pytest>=7,<9",
            "pytest-asyncio",
            "pytest-mock",
        ],
    },
    entry_points={
        "console_scripts": [
            "chromever=chromever.cli:main",
        ],
    },
)
