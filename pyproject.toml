[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kubechat-tui"
version = "0.1.0"
description = "Full-screen terminal chat interface for a Kubernetes assistant agent"
requires-python = ">=3.10"
keywords = ["kubernetes", "terminal", "tui", "chat", "assistant"]
classifiers = [
    "Development Status :: 3 - Alpha",
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
    "Topic :: Terminals",
    "Typing :: Typed",
]
dependencies = [
    "rich",
    "prompt-toolkit",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["kubechat_tui"]

[tool.pytest.ini_options]
addopts = "-ra"
