[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tbevents"
version = "0.1.0"
description = "Write TensorBoard event files (scalars, histograms, images, audio, text, embeddings) in pure Python"
requires-python = ">=3.10"
dependencies = []
keywords = ["tensorboard", "tfevents", "event-file", "logging", "visualization", "crc32c"]
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
    "Topic :: Scientific/Engineering :: Visualization",
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tbevents"]

[tool.pytest.ini_options]
addopts = "-ra"
