"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import os
import subprocess
import sys
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Generator, Iterator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"
HOST = "127.0.0.1"


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    health_port: int
    directory: Path
    process: subprocess.Popen[str]
    log_file: Path


def _server_env(directory: Path, overrides: dict[str, str] | None) -> dict[str, str]:
    """Inherit the test environment minus any APP_* settings of the caller."""
    env = {key: value for key, value in os.environ.items() if not key.startswith("APP_")}
    env.pop("KO_DATA_PATH", None)
    # keep standalone map files out of the project root
    env["APP_HEADER_MAP_PATH"] = str(directory.parent / "headers.yaml")
    env["APP_TEMPLATE_MAP_PATH"] = str(directory.parent / "template-map.yaml")
    env["APP_REDIRECT_ROUTES_PATH"] = str(directory.parent / "redirects.yaml")
    env.update(overrides or {})
    return env


@contextmanager
def _launch_server(
    directory: Path,
    env: dict[str, str] | None = None,
    extra_args: list[str] | None = None,
) -> Iterator[ServerProcessInfo]:
    port = reserve_port(HOST)
    health_port = reserve_port(HOST)
    log_file = directory.parent / f"server-{port}.log"
    args = [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        "--directory",
        str(directory),
        "--host",
        HOST,
        "--port",
        str(port),
        "--health-port",
        str(health_port),
        "--log-destination",
        str(log_file),
    ]
    if extra_args:
        args.extend(extra_args)

    with subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        env=_server_env(directory, env),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        try:
            wait_for_port(HOST, port)
            wait_for_port(HOST, health_port)
        except Exception:
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            if log_file.exists():
                print(f"\nServer log:\n{log_file.read_text(encoding='utf-8')}")
            raise

        yield {
            "base_url": f"http://{HOST}:{port}",
            "host": HOST,
            "port": port,
            "health_port": health_port,
            "directory": directory,
            "process": process,
            "log_file": log_file,
        }

        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                process.kill()


ServerFactory = Callable[..., ServerProcessInfo]


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture()
def site_directory(tmp_path: Path) -> Path:
    """An empty serve folder inside a per-test temporary directory."""

    directory = tmp_path / "site"
    directory.mkdir()
    return directory


@pytest.fixture(name="server_factory")
def _server_factory() -> Generator[ServerFactory, None, None]:
    """Start servers with custom folders, environments and flags."""

    with ExitStack() as stack:

        def start(
            directory: Path,
            env: dict[str, str] | None = None,
            extra_args: list[str] | None = None,
        ) -> ServerProcessInfo:
            return stack.enter_context(_launch_server(directory, env, extra_args))

        yield start


@pytest.fixture(name="server_process")
def _server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the HTTP server in standard mode over a small static site."""

    directory = tmp_path_factory.mktemp("server") / "site"
    directory.mkdir()
    (directory / "index.html").write_text("<h1>home</h1>\n", encoding="utf-8")
    (directory / "style.css").write_text("body { color: red; }\n", encoding="utf-8")
    (directory / "docs").mkdir()
    (directory / "docs" / "guide.txt").write_text("guide\n", encoding="utf-8")
    with _launch_server(directory) as info:
        yield info


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
