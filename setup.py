"""Setup configuration for VoiceWarden Discord Bot."""
from setuptools import setup, find_packages

setup(
    name="voicewarden",
    version="0.0.1",
    description="A Discord bot that moderates ephemeral voice channels through an external voice bot",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord[voice]",
        "aiosqlite",
        "PyYAML",
        "python-dotenv",
        "prompt_toolkit",
    ],
    extras_require={
        "test": ["pytest", "pytest-asyncio"],
    },
    entry_points={
        "console_scripts": [
            "voicewarden=voicewarden.main:main",
        ],
    },
)
