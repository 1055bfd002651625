from setuptools import setup, find_packages

setup(
    name='rke2-cluster-provider',
    version='0.1.0',
    packages=find_packages(exclude=['rke2provider.tests']),
    include_package_data=True,
    install_requires=[
        'typer[all]',
        'pydantic>=2',
        'pyyaml',
        'jsonschema',
        'python-dotenv',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'rke2provider=rke2provider.cli:run',
            'agent-provider-rke2=rke2provider.cli:run',
        ]
    },
    description='Cluster provider plugin rendering boot configuration for RKE2 nodes',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
    python_requires='>=3.8',
)
