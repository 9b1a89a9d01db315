[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "meshsoc"
version = "0.1.0"
description = "Software model of a mesh network-on-chip SoC with tiles, DMEM modules, tile DMA, a mesh router and a PLIC interrupt controller"
requires-python = ">=3.10"
dependencies = []
keywords = ["noc", "mesh", "soc", "simulation", "plic", "dma", "emulator", "hal"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Scientific/Engineering :: Electronic Design Automation (EDA)",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
meshsoc = "meshsoc.platform:main"

[tool.hatch.build.targets.wheel]
packages = ["meshsoc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
