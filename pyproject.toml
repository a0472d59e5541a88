[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "overlayroute"
version = "0.1.0"
description = "Overlay network routing: multi-hop packet headers, k-shortest paths, outlier detection, carousel greedy flow search and BPR load balancing"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "routing",
    "overlay",
    "k-shortest-paths",
    "yen",
    "dijkstra",
    "outlier-detection",
    "max-flow",
    "carousel-greedy",
    "load-balancing",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
overlayroute-carousel = "overlayroute.carousel.cli:main"
overlayroute-bpr = "overlayroute.bpr.client:main"

[tool.hatch.build.targets.wheel]
packages = ["overlayroute"]

[tool.pytest.ini_options]
addopts = "-ra"
