from setuptools import setup, find_packages

setup(
    name="wecsubs",
    version="0.1.0",
    description="Enumerate and modify Windows Event Collector subscriptions",
    packages=find_packages(include=['wecsubs', 'wecsubs.*']),
    python_requires='>=3.8',
    install_requires=[
        'pywinrm>=0.4.3',
        'requests>=2.25.0',
        'defusedxml>=0.7.1',
        'PyYAML>=5.4',
        'python-dotenv>=0.19.0',
        'pydantic>=2.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'wecsubs=wecsubs.cli:main',
        ],
    },
)
