from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fp:
    long_description = fp.read()

setup(
    name="mcruntime",
    version="1.0.0",
    description="mcruntime is a module that resolves and installs the Java runtimes distributed "
                "by Mojang for Minecraft launchers, with Mojang user utilities and a small CLI.",
    author="Théo Rozier",
    author_email="contact@theorozier.fr",
    packages=["mcruntime", "mcruntime.cli"],
    url="https://github.com/mindstorm38/portablemc",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="GPL-3.0",
    python_requires=">=3.9",
    extras_require={
        "certifi": ["certifi"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["mcruntime = mcruntime.cli:main"],
    },
)
