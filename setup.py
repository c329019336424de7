from setuptools import setup, find_packages

setup(
    name='provctl',
    version='0.1.0',
    packages=find_packages(exclude=['provctl.tests']),
    include_package_data=True,
    install_requires=[
        'typer[all]',
        'fastapi',
        'uvicorn',
        'kubernetes',
        'urllib3',
        'ansible',
        'ansible-runner',
        'python-dotenv',
        'pydantic>=2',
        'pyyaml',
        'paramiko',
        'rich',
    ],
    extras_require={
        'test': [
            'pytest',
            'httpx',
        ],
    },
    entry_points={
        'console_scripts': [
            'provctl=provctl.cli:run',
            'provctl-api=provctl.api.main:serve',
        ]
    },
    author='Your Name',
    description='CLI and API for provisioning and upgrading Kubernetes clusters from a plan file',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
