from setuptools import setup, find_packages

setup(
    name="mapbench",
    version="0.1.0",
    packages=find_packages(include=["mapbench", "mapbench.*"]),
    install_requires=[
        'pyyaml>=5.1',
        'pydantic>=2.0',
        'click>=8.0',
        'rich>=12.0',
        'aiohttp>=3.8',
        'hdrhistogram>=0.10.3',
        'numpy>=1.21',
        'pandas>=1.3',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-asyncio>=0.21',
        ],
    },
    entry_points={
        'console_scripts': [
            'mapbench=mapbench.cli:main',
        ],
    },
    python_requires='>=3.8',
)
