#    setup.py
#        Standard installation script
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

#type: ignore

from setuptools import setup, find_packages #type:ignore
import sys
import os

os.chdir(os.path.dirname(os.path.abspath(__file__)))

import dwarfscope

dependencies = [
    'pyelftools==0.31',
    'sortedcontainers==2.4.0',
]

if sys.version_info < (3,11):
    dependencies.append("typing-extensions==4.12.2")

setup(
    name="dwarfscope",    # Pypi name
    python_requires='>=3.9',
    description='Reader for the DWARF debugging information of ELF images',
    version=dwarfscope.__version__,
    author=dwarfscope.__author__,
    license=dwarfscope.__license__,

    packages=find_packages(where='.', exclude=["test", "test.*"], include=['dwarfscope', "dwarfscope.*"]),
    package_data = {
        'dwarfscope': ['py.typed'],
    },

    setup_requires=[],
    install_requires=dependencies,
    extras_require={
        'test': ['mypy', 'coverage'],
        'dev': ['mypy', 'autopep8', 'coverage'],
    },
)
