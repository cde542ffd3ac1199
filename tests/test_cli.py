import subprocess
import sys
from pathlib import Path

from click.testing import CliRunner

from dapper import __version__
from dapper.cli import cli


def init_site(runner: CliRunner, target: Path):
    return runner.invoke(cli, ["init", str(target)])


def test_init_scaffolds_exactly_three_files(tmp_path):
    runner = CliRunner()
    target = tmp_path / "mysite"
    result = init_site(runner, target)
    assert result.exit_code == 0
    assert "New Dapper site created at" in result.output
    files = sorted(p.relative_to(target).as_posix() for p in target.rglob("*") if p.is_file())
    assert files == ["_config.yml", "_layout/index.html", "_source/index.md"]
    assert (target / "_config.yml").read_text(encoding="utf-8") == "name: My Site\n"


def test_init_refuses_to_overwrite(tmp_path):
    runner = CliRunner()
    target = tmp_path / "mysite"
    init_site(runner, target)
    (target / "_config.yml").write_text("name: Mine\n", encoding="utf-8")

    result = init_site(runner, target)
    assert result.exit_code != 0
    assert "Refusing to overwrite" in result.output
    assert (target / "_config.yml").read_text(encoding="utf-8") == "name: Mine\n"


def test_init_allows_unrelated_files(tmp_path):
    runner = CliRunner()
    (tmp_path / "README.md").write_text("readme", encoding="utf-8")
    result = init_site(runner, tmp_path)
    assert result.exit_code == 0
    assert (tmp_path / "_source" / "index.md").exists()


def test_init_then_build_produces_welcome_page(monkeypatch, tmp_path):
    runner = CliRunner()
    init_site(runner, tmp_path)
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(cli, ["build"])
    assert result.exit_code == 0
    assert "Processed 1 files (1 rendered, 0 copied)" in result.output
    page = (tmp_path / "_output" / "index.html").read_text(encoding="utf-8")
    assert "<title>Welcome</title>" in page
    assert "<h1>My Site</h1>" in page
    assert "<p>Hello world.</p>" in page


def test_build_reports_page_errors_and_strict_fails(monkeypatch, tmp_path):
    runner = CliRunner()
    init_site(runner, tmp_path)
    (tmp_path / "_source" / "broken.md").write_text("---\ntitle: x\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(cli, ["build"])
    assert result.exit_code == 0
    assert "with 1 error" in result.output
    assert "broken.md" in result.output
    assert (tmp_path / "_output" / "index.html").exists()

    result = runner.invoke(cli, ["build", "--strict"])
    assert result.exit_code == 1


def test_build_clean_removes_stale_output(monkeypatch, tmp_path):
    runner = CliRunner()
    init_site(runner, tmp_path)
    monkeypatch.chdir(tmp_path)
    (tmp_path / "_output").mkdir()
    (tmp_path / "_output" / "stale.txt").write_text("old", encoding="utf-8")

    runner.invoke(cli, ["build"])
    assert (tmp_path / "_output" / "stale.txt").exists()
    result = runner.invoke(cli, ["build", "--clean"])
    assert result.exit_code == 0
    assert not (tmp_path / "_output" / "stale.txt").exists()


def test_build_missing_source_is_fatal(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "source directory not found" in result.output
    assert not (tmp_path / "_output").exists()


def test_build_bad_config_is_fatal(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "_config.yml").write_text("- just\n- a list\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output


def test_build_options_override_config(monkeypatch, tmp_path):
    runner = CliRunner()
    (tmp_path / "pages").mkdir()
    (tmp_path / "layouts").mkdir()
    (tmp_path / "site.yml").write_text("name: Custom\n", encoding="utf-8")
    (tmp_path / "layouts" / "main.html").write_text(
        "{{ site.name }}:{{ page.content }}", encoding="utf-8"
    )
    (tmp_path / "pages" / "index.md").write_text(
        "---\nlayout: main\n---\nHi\n", encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(
        cli, ["build", "-c", "site.yml", "-s", "pages", "-l", "layouts", "-o", "public"]
    )
    assert result.exit_code == 0
    assert (tmp_path / "public" / "index.html").read_text(encoding="utf-8") == "Custom:<p>Hi</p>\n"


def test_help_version_and_unknown_command():
    runner = CliRunner()
    result = runner.invoke(cli, ["-h"])
    assert result.exit_code == 0
    assert "Usage:" in result.output

    result = runner.invoke(cli, ["-v"])
    assert result.exit_code == 0
    assert __version__ in result.output

    result = runner.invoke(cli, ["frobnicate"])
    assert result.exit_code == 0
    assert "Usage:" in result.output
    assert "build" in result.output

    result = runner.invoke(cli, [])
    assert result.exit_code == 0
    assert "Usage:" in result.output


def test_serve_passes_options_to_dev_server(monkeypatch, tmp_path):
    runner = CliRunner()
    init_site(runner, tmp_path)
    monkeypatch.chdir(tmp_path)
    called = {}

    class DummyServer:
        def __init__(self, config, http_port=None, ws_port=None, interval=1.0, loader=None):
            called["config"] = config
            called["port"] = http_port
            called["ws_port"] = ws_port
            called["interval"] = interval
            called["loader"] = loader

        def start(self):
            called["started"] = True

    monkeypatch.setattr("dapper.server.DevServer", DummyServer)
    result = runner.invoke(
        cli,
        ["serve", "--port", "5050", "--ws-port", "5051", "--interval", "0.5", "-o", "public"],
        catch_exceptions=False,
    )
    assert result.exit_code == 0
    assert called["started"]
    assert called["port"] == 5050
    assert called["ws_port"] == 5051
    assert called["interval"] == 0.5
    assert called["config"].output_dir == tmp_path.resolve() / "public"
    assert called["loader"]().output_dir == tmp_path.resolve() / "public"


def test_serve_fatal_error_exits_nonzero(monkeypatch, tmp_path):
    from dapper.errors import SourceNotFoundError

    monkeypatch.chdir(tmp_path)

    class FailingServer:
        def __init__(self, config, **kwargs):
            self.config = config

        def start(self):
            raise SourceNotFoundError(self.config.source_dir)

    monkeypatch.setattr("dapper.server.DevServer", FailingServer)
    result = CliRunner().invoke(cli, ["serve"])
    assert result.exit_code == 1
    assert "source directory not found" in result.output


def test_watch_builds_then_runs_watcher(monkeypatch, tmp_path):
    runner = CliRunner()
    init_site(runner, tmp_path)
    monkeypatch.chdir(tmp_path)
    events = []

    class DummyWatcher:
        def __init__(self, config, interval=1.0, use_events=False, loader=None):
            events.append(("new", config.source_dir, interval, use_events))

        def init(self):
            events.append("init")

        def run(self):
            events.append("run")
            raise KeyboardInterrupt

        def stop(self):
            events.append("stop")

    monkeypatch.setattr("dapper.watcher.Watcher", DummyWatcher)
    result = runner.invoke(cli, ["watch", "--interval", "2"], catch_exceptions=False)
    assert result.exit_code == 0
    assert (tmp_path / "_output" / "index.html").exists()
    assert events == [("new", tmp_path.resolve() / "_source", 2.0, True), "init", "run", "stop"]
    assert "Stopping..." in result.output


def test_module_entrypoint_prints_help(tmp_path):
    completed = subprocess.run(
        [sys.executable, "-m", "dapper", "--help"],
        capture_output=True,
        text=True,
        cwd=tmp_path,
    )
    assert completed.returncode == 0
    assert "Usage:" in completed.stdout
