from setuptools import setup, find_packages

setup(
    name="chitin",
    version="0.1.0",
    description="Background daemon that turns natural-language requests into shell commands",
    author="phisanti",
    author_email="tisalon@outlook.com",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"chitin": ["data/*.zsh"]},
    install_requires=[
        "mistralai>=1.2.0",
        "requests>=2.31.0",
        "python-dotenv>=1.0.0",
        "typer>=0.12.0",
        "rich>=13.7.0",
        "setproctitle>=1.3.0",
    ],
    extras_require={
        "test": ["pytest>=8.0"],
    },
    entry_points={
        "console_scripts": [
            "chitin=chitin.main:chitin",
        ],
    },
    python_requires=">=3.10",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
)
