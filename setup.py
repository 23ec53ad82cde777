from setuptools import setup, find_packages

with open("requirements.txt", "r") as f:
    requirements = f.read().splitlines()

setup(
    name="sw_db_sync",
    version="0.1.0",
    packages=find_packages(include=["sw_db_sync", "sw_db_sync.*"]),
    include_package_data=True,
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        'console_scripts': [
            'sw-db-sync=sw_db_sync.cli:main',
        ],
    },
    description="Database sync tools for Shopware: copy a remote database into the local environment",
    keywords="shopware, mysql, database, sync, deployment",
    python_requires=">=3.8",
)
