"""Pytest configuration and fixtures for LogLive tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

from loglive.annotations import CollectingAnnotationSink
from loglive.config_manager import Settings
from loglive.engine import InMemoryDocument, LiveSession
from loglive.interpreter import Evaluator
from loglive.parser import SourceParser
from loglive.runtime import Environment
from loglive.source_provider import InMemorySourceProvider


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory, monkeypatch):
    """Point the config file at a temporary directory for every test."""
    config_file = tmp_path_factory.mktemp("loglive_home") / "config.toml"
    monkeypatch.setattr("loglive.config.CONFIG_FILE", config_file)
    monkeypatch.setattr("loglive.config_manager.CONFIG_FILE", config_file)
    return config_file


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture(scope="session")
def parser() -> SourceParser:
    return SourceParser()


@pytest.fixture
def evaluator(parser: SourceParser) -> Evaluator:
    return Evaluator(parser=parser, timeout=1.0)


@pytest.fixture
def evaluate(evaluator: Evaluator) -> Callable:
    """Evaluate a snippet against an optional name -> value mapping."""

    def run(snippet: str, bindings=None):
        environment = Environment()
        for name, value in (bindings or {}).items():
            environment.bind(name, value)
        return evaluator.evaluate(snippet, environment)

    return run


@pytest.fixture
def sink() -> CollectingAnnotationSink:
    return CollectingAnnotationSink()


@pytest.fixture
def make_session(sink: CollectingAnnotationSink) -> Callable:
    """Build a session over an in-memory document.

    Returns ``(session, document)``; extra modules for imports can be
    passed as ``files={"/project/lib.ts": "..."}``.
    """

    def build(text: str, path: str = "/project/main.ts", files=None, **settings):
        provider = InMemorySourceProvider(files or {})
        session = LiveSession(sink, source_provider=provider, settings_loader=lambda: Settings(**settings))
        document = InMemoryDocument(text, path=Path(path))
        session.open(document)
        return session, document

    return build


@pytest.fixture
def sample_typescript() -> str:
    """Sample TypeScript source exercising functions, variables and console.log."""
    return '''function add(a: number, b: number): number {
  return a + b;
}

const base: number = 40;
const greeting = `hello ${"world"}`;
let items: string[] = ["a", "b"];

add(base, 2);
console.log(add(base, 2));
console.log(greeting, items.length);
'''
