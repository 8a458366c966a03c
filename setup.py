#!/usr/bin/env python3

import os
import setuptools


basedir = os.path.dirname(__file__)


def read_requirements(path):
    with open(os.path.join(basedir, path)) as f:
        lines = [x.strip() for x in f.readlines()]
        return [x for x in lines if x and x[0] != "#"]


meta = {}
meta["requirements"] = read_requirements("requirements/base.txt")
meta["install_requires"] = [line for line in meta["requirements"] if "://" not in line]


setuptools.setup(
    name="pstate",
    version="0.0.1",
    description="Get and set the intel_pstate kernel parameters",
    install_requires=meta["install_requires"],
    extras_require={"test": read_requirements("requirements/test.txt")},
    python_requires="~=3.9",
    dependency_links=[],
    data_files=[(".", ["requirements/base.txt"])],
    entry_points={
        "console_scripts": [
            "pstate =  pstate.pstate:main",
        ],
    },
    packages=setuptools.find_packages(exclude=["pstate.tests*"]),
)
