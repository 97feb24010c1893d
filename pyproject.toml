[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ncps"
version = "0.1.0"
description = "Building blocks for a Nix binary cache proxy: nar URLs, a local disk store, nix-cache-info parsing and an SQLite index."
requires-python = ">=3.11"
dependencies = []
keywords = ["nix", "binary-cache", "proxy", "narinfo", "nar", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: System :: Software Distribution",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ncps"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"
