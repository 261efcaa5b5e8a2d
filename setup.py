#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""The setup script."""

from setuptools import setup, find_packages

with open('README.rst') as readme_file:
    readme = readme_file.read()

with open('requirements.txt') as r:
    requirements = [line.strip() for line in r
                    if line.strip() and not line.startswith('#')]

test_requirements = ['pytest', ]

setup(
    name='hostkit',
    version='0.3.0',
    description='Bootstrap a Linux host with Docker, k3s and local users',
    long_description=readme,
    long_description_content_type='text/x-rst',
    packages=find_packages(include=['hostkit', 'hostkit.*']),
    python_requires='>=3.8',
    install_requires=requirements,
    tests_require=test_requirements,
    extras_require={'test': test_requirements},
    entry_points={
        'console_scripts': [
            'hostkit = hostkit.hostkit:main',
        ],
    },
    classifiers=[
        'Environment :: Console',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Topic :: System :: Installation/Setup',
        'Topic :: System :: Systems Administration',
    ],
)
