from setuptools import setup, find_packages

setup(
    name="sftpsync",
    version="0.1.0",
    description="One-way synchronization of a local directory onto a remote host over SFTP",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",  # asyncio.to_thread
    install_requires=[
        "paramiko>=2.7.0",
        "keyring>=23.0",      # Stored SFTP passwords
        "rich>=12.0",         # Colored progress output
        "click>=8.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "sftpsync=sftpsync.cli.main:cli",
        ],
    },
)
