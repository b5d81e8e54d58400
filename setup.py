"""Setup configuration for the Relaycord Discord bot."""

from setuptools import setup, find_packages

setup(
    name="relaycord",
    version="0.0.1",
    description="A Discord bot for cross-server global chat and proxy identities",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.4",
        "aiohttp>=3.8",
        "aiosqlite>=0.19",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "prompt_toolkit>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "relaycord=relaycord.main:main",
        ],
    },
)
