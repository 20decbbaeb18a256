from setuptools import setup, find_packages

setup(
    name="natsync",
    version="0.1.0",
    description="Synchronous client for a text based publish/subscribe protocol",
    packages=find_packages(include=["natsync", "natsync.*"]),
    python_requires=">=3.10",
    install_requires=[
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.3.0",
            "black",
            "ruff",
        ]
    },
    include_package_data=True,
    zip_safe=False,
)
