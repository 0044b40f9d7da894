import pytest

from themekit import cli
from themekit.stages import scripts, style


def _project(tmp_path, config_name: str = "config-default.yml") -> None:
    (tmp_path / config_name).write_text(
        "NAME: demo\n"
        "PATHS:\n"
        "  dist: dist\n"
        "  entries: [src/assets/js/app.js]\n"
        "  htmlAssets: [src/html/*.html]\n"
        "  package: ['**/*', '!node_modules/**']\n",
        encoding="utf-8",
    )
    scss = tmp_path / "src" / "assets" / "scss"
    scss.mkdir(parents=True)
    (scss / "main.scss").write_text("a { b: c; }\n", encoding="utf-8")
    js = tmp_path / "src" / "assets" / "js"
    js.mkdir(parents=True)
    (js / "app.js").write_text("var a = 1;\n", encoding="utf-8")
    html = tmp_path / "src" / "html"
    html.mkdir(parents=True)
    (html / "index.html").write_text("<p>hi</p>\n", encoding="utf-8")


@pytest.fixture(autouse=True)
def _no_external_tools(monkeypatch):
    monkeypatch.setattr(scripts, "find_binary", lambda *_args, **_kwargs: None)
    monkeypatch.setattr(style, "find_binary", lambda *_args, **_kwargs: None)


def test_cli_list_stages(tmp_path, capsys):
    _project(tmp_path)

    exit_code = cli.main(["list-stages", "--project-dir", str(tmp_path)])

    assert exit_code == 0
    out = capsys.readouterr().out
    for name in ("archive", "clean", "copy", "images", "markup", "phpcs", "scripts", "style"):
        assert f"{name}: " in out


def test_cli_build(tmp_path):
    _project(tmp_path)

    exit_code = cli.main(["build", "--project-dir", str(tmp_path), "--production"])

    assert exit_code == 0
    assert (tmp_path / "dist" / "assets" / "css" / "main.css").read_text(encoding="utf-8").startswith("a{b:c}")
    assert (tmp_path / "dist" / "assets" / "js" / "app.js").is_file()
    assert (tmp_path / "dist" / "index.html").is_file()


def test_cli_package_writes_an_archive(tmp_path):
    _project(tmp_path)

    exit_code = cli.main(["package", "--project-dir", str(tmp_path)])

    assert exit_code == 0
    archives = list((tmp_path / "packaged").glob("demo_*.zip"))
    assert len(archives) == 1


def test_cli_build_failure_exits_nonzero(tmp_path):
    _project(tmp_path)
    (tmp_path / "src" / "assets" / "scss" / "main.scss").write_text("a { b: $nope; }\n", encoding="utf-8")

    assert cli.main(["build", "--project-dir", str(tmp_path)]) == 1


def test_cli_missing_config_exits_nonzero(tmp_path, capsys):
    exit_code = cli.main(["build", "--project-dir", str(tmp_path)])

    assert exit_code == 1
    assert "Exiting process, no config file exists." in capsys.readouterr().err


def test_cli_invalid_config_exits_nonzero(tmp_path, capsys):
    (tmp_path / "config.yml").write_text("PATHS: {}\n", encoding="utf-8")

    assert cli.main(["build", "--project-dir", str(tmp_path)]) == 1
    assert "Missing required config: PATHS.dist" in capsys.readouterr().err


def test_cli_requires_a_command():
    with pytest.raises(SystemExit):
        cli.main([])


def test_cli_accepts_shared_flags_before_the_command(tmp_path):
    _project(tmp_path)

    exit_code = cli.main(["--project-dir", str(tmp_path), "--production", "build"])

    assert exit_code == 0
    css = (tmp_path / "dist" / "assets" / "css" / "main.css").read_text(encoding="utf-8")
    assert css.startswith("a{b:c}")


def test_cli_shared_flags_combine_across_positions(tmp_path):
    args = cli.build_parser().parse_args(["--production", "-v", "build", "--project-dir", str(tmp_path)])

    assert args.production is True
    assert args.verbose is True
    assert args.development is False
    assert args.project_dir == str(tmp_path)
    assert args.command == "build"
