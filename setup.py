#!/usr/bin/python
# vim: tabstop=4 shiftwidth=4 softtabstop=4

from setuptools import setup, find_packages


setup(
    name='pyvsphere',
    version='1.0.0',
    description='Thin client library and CLI for the VMware vSphere API',
    license='Apache License (2.0)',
    author='Roman Sokolkov, Oleg Balakirev',
    author_email='rsokolkov@mirantis.com',
    packages=find_packages(exclude=['tests', 'bin']),
    install_requires=[
        'suds-community',
        'eventlet',
    ],
    extras_require={
        'test': ['pytest'],
    },
    python_requires='>=3.6',
    include_package_data=True,
    classifiers=[
        'Development Status :: 4 - Beta',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Environment :: Console',
    ],
    scripts=['bin/vsphere'])
