from setuptools import setup, find_packages

setup(
    name='elasticctl',
    version='0.1.0',
    packages=find_packages(exclude=['elasticctl.tests']),
    include_package_data=True,
    install_requires=[
        'typer',
        'fastapi',
        'uvicorn',
        'pydantic>=2',
        'python-dotenv',
        'requests',
        'pyyaml',
    ],
    extras_require={
        'test': [
            'pytest',
            'httpx',
        ],
    },
    entry_points={
        'console_scripts': [
            'elasticctl=elasticctl.cli:app'
        ]
    },
    description='A CLI and status API for deploying multi-node Elastic Stack clusters with docker compose',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
