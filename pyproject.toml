[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "parlab"
version = "0.1.0"
description = "Small image writers (PNG, JPEG, BMP, TGA, Radiance HDR), a zlib encoder and a stopwatch"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["png", "jpeg", "bmp", "tga", "hdr", "image writer", "zlib", "deflate", "timer"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Mathematics",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["parlab"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
