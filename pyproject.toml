[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "parbench"
version = "0.1.0"
description = "Measure how a tiny tree-walking interpreter scales across parallel threads, with optional pinning to logical processors"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "benchmark",
    "threads",
    "parallelism",
    "cpu-affinity",
    "processor-groups",
    "interpreter",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Benchmark",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
parbench = "parbench.runner:main"
parbench-affinity = "parbench.affinity:main"
parbench-group-affinity = "parbench.group_affinity:main"
parbench-proc-groups = "parbench.proc_groups:main"

[tool.setuptools]
packages = ["parbench"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
