"""Install the alumni directory service."""

from setuptools import setup, find_packages

setup(
    name='alumni-directory',
    version='0.1.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={'directory': ['config.py']},
    install_requires=[
        "flask>=2.2",
        "flask-sqlalchemy>=3.0",
        "sqlalchemy>=1.4",
        "wtforms>=3.0",
        "boto3",
        "botocore",
        "requests",
        "retry",
        "pytz",
        "python-json-logger>=3.1",
        "click"
    ],
    extras_require={
        'test': [
            "pytest",
            "hypothesis",
            "mimesis"
        ]
    },
    zip_safe=False
)
