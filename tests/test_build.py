from pathlib import Path

import pytest

from dapper.build import build, build_site
from dapper.config import load_config
from dapper.errors import ConfigError, ParseError, SourceNotFoundError, WriteError


def create_project(tmp_path: Path) -> Path:
    (tmp_path / "_source" / "docs").mkdir(parents=True)
    (tmp_path / "_layout").mkdir()
    (tmp_path / "_config.yml").write_text(
        "name: Docs\ntagline: Read me\n", encoding="utf-8"
    )
    (tmp_path / "_layout" / "page.html").write_text(
        "<title>{{ page.title }} | {{ site.name }}</title><em>{{ site.tagline }}</em>{{ page.content }}",
        encoding="utf-8",
    )
    (tmp_path / "_source" / "index.md").write_text(
        "---\nlayout: page\ntitle: Home\n---\n# Hi\n", encoding="utf-8"
    )
    (tmp_path / "_source" / "docs" / "guide.md").write_text(
        "---\nlayout: page\ntitle: Guide\n---\nSteps.\n", encoding="utf-8"
    )
    return tmp_path


def read_tree(directory: Path) -> dict[str, bytes]:
    return {
        path.relative_to(directory).as_posix(): path.read_bytes()
        for path in sorted(directory.rglob("*"))
        if path.is_file()
    }


def test_build_site_renders_with_site_values(tmp_path):
    config = load_config(root=create_project(tmp_path))
    report = build_site(config)
    assert report.ok
    assert report.rendered == 2
    assert report.output_dir == tmp_path / "_output"
    guide = (tmp_path / "_output" / "docs" / "guide.html").read_text(encoding="utf-8")
    assert guide == "<title>Guide | Docs</title><em>Read me</em><p>Steps.</p>\n"


def test_build_twice_is_byte_identical(tmp_path):
    config = load_config(root=create_project(tmp_path))
    build_site(config)
    first = read_tree(config.output_dir)
    build_site(config)
    assert read_tree(config.output_dir) == first


def test_missing_source_is_fatal_and_touches_nothing(tmp_path):
    config = load_config(root=tmp_path)
    with pytest.raises(SourceNotFoundError) as excinfo:
        build_site(config)
    assert excinfo.value.path == tmp_path / "_source"
    assert not (tmp_path / "_output").exists()


def test_unparsable_config_is_fatal(tmp_path):
    create_project(tmp_path)
    (tmp_path / "_config.yml").write_text("name: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        build(root=tmp_path)
    assert not (tmp_path / "_output").exists()


def test_build_keeps_stale_files_unless_clean(tmp_path):
    config = load_config(root=create_project(tmp_path))
    config.output_dir.mkdir()
    (config.output_dir / "stale.txt").write_text("old", encoding="utf-8")

    build_site(config)
    assert (config.output_dir / "stale.txt").exists()

    build_site(config, clean_output=True)
    assert not (config.output_dir / "stale.txt").exists()
    assert (config.output_dir / "index.html").exists()


def test_output_dir_override(tmp_path):
    config = load_config(root=create_project(tmp_path))
    staging = tmp_path / "staging"
    report = build_site(config, output_dir_override=staging)
    assert report.output_dir == staging
    assert (staging / "index.html").exists()
    assert not config.output_dir.exists()


def test_build_with_overrides(tmp_path):
    create_project(tmp_path)
    (tmp_path / "_source").rename(tmp_path / "content")
    report = build(root=tmp_path, source="content", output="public")
    assert report.ok
    assert (tmp_path / "public" / "index.html").exists()


def test_per_file_errors_do_not_abort(tmp_path):
    create_project(tmp_path)
    (tmp_path / "_source" / "broken.md").write_text("---\ntitle: x\n", encoding="utf-8")
    report = build(root=tmp_path)
    assert [type(e) for e in report.errors] == [ParseError]
    assert report.rendered == 2


def test_clean_output_failure_is_a_write_error(monkeypatch, tmp_path):
    config = load_config(root=create_project(tmp_path))
    config.output_dir.mkdir()

    def failing_rmtree(path, *args, **kwargs):
        raise PermissionError("denied")

    monkeypatch.setattr("dapper.utils.shutil.rmtree", failing_rmtree)
    with pytest.raises(WriteError, match="cannot prepare output directory"):
        build_site(config, clean_output=True)
