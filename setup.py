import setuptools

from mothership import __version__

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="mothership",
    version=__version__,
    description="Fleet coordinator for light-sensing Arduino IoT Cloud devices",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        'requests',
        'python-dotenv',
        'fastapi',
        'uvicorn',
        'pydantic>=2.0',
        'pydantic-settings',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
            'httpx',
        ],
    },
    entry_points={
        'console_scripts': [
            'mothership=mothership.__main__:main',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
