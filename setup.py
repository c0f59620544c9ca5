import os
from setuptools import setup, find_packages

version = os.environ.get('RELEASE_VERSION', '0.9.0')

setup(
    name='elbisaur',
    version=version,
    author='elbisaur contributors',
    packages=find_packages(include=['elbisaur', 'elbisaur.*']),
    package_data={'elbisaur.parsers.tests': ['data/*']},
    description='ListenBrainz API client and command line tool to manage and convert listens.',
    python_requires='>=3.8',
    install_requires=[
        "click>=8.0",
        "ijson>=3.1",
        "more-itertools>=8.0",
        "orjson>=3.6",
        "pydantic>=2.0",
        "python-dateutil>=2.8",
        "python-dotenv>=0.19",
        "PyYAML>=5.4",
        "requests>=2.27",
        "urllib3>=1.26",
    ],
    extras_require={
        'test': [
            "pytest",
            "requests-mock",
        ],
    },
    entry_points={
        'console_scripts': [
            'elbisaur = elbisaur.cli:main',
        ],
    },
    zip_safe=False
)
