[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gcedeploy"
version = "0.1.0"
description = "Build, tear down and collect logs from Kubernetes test clusters on GCE using the cluster scripts"
requires-python = ">=3.10"
dependencies = []
keywords = ["kubernetes", "gce", "e2e", "testing", "cluster", "deployer"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
    "Topic :: System :: Clustering",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
gcedeploy = "gcedeploy.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["gcedeploy"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
