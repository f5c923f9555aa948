[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "upgrade-manager"
version = "0.1.0"
description = "Multisig-governed, timelocked program upgrade rules and an HTTP service that tracks proposals and account migrations"
requires-python = ">=3.10"
keywords = [
    "upgrade",
    "multisig",
    "timelock",
    "governance",
    "migration",
    "rollback",
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
    "Framework :: AsyncIO",
    "Topic :: Software Development :: Version Control",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "aiosqlite>=0.19",
    "starlette>=0.36",
    "uvicorn>=0.27",
    "python-dotenv>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
    "httpx>=0.26",
]

[project.scripts]
upgrade-manager = "upgrade_manager.backend.app:main"

[tool.hatch.build.targets.wheel]
packages = ["upgrade_manager"]

[tool.hatch.build.targets.sdist]
include = ["upgrade_manager", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
