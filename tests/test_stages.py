import io
import zipfile
from datetime import datetime

import pytest
from PIL import Image

from themekit.foundation.tools import ToolNotFoundError
from themekit.framework.config import BuildConfig
from themekit.stages import archive, clean, copy_assets, images, markup, phpcs, scripts, style


def _write(path, text: str = "x") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _config(tmp_path, *, mode="default", **paths) -> BuildConfig:
    cfg, _warnings = BuildConfig.from_dict(
        {"NAME": "demo", "PATHS": {"dist": "dist", **paths}},
        project_dir=str(tmp_path),
        mode=mode,
    )
    return cfg


def test_clean_removes_the_destination(tmp_path):
    _write(tmp_path / "dist" / "assets" / "css" / "old.css")
    config = _config(tmp_path)

    clean.run(config)

    assert not (tmp_path / "dist").exists()
    clean.run(config)


def test_clean_refuses_to_leave_the_project(tmp_path):
    config = _config(tmp_path)
    outside = BuildConfig(
        project_root=config.project_root,
        project_name="demo",
        destination_root=str(tmp_path.parent),
    )

    with pytest.raises(ValueError, match=r"Refusing to delete"):
        clean.run(outside)


def test_copy_keeps_paths_relative_to_the_glob_base(tmp_path):
    _write(tmp_path / "src" / "assets" / "fonts" / "a.woff")
    _write(tmp_path / "src" / "assets" / "scss" / "main.scss")
    _write(tmp_path / "src" / "assets" / "robots.txt")
    config = _config(
        tmp_path, assets=["src/assets/**/*", "!src/assets/{images,js,scss}/**/*"]
    )

    copy_assets.run(config)

    out = tmp_path / "dist" / "assets"
    assert (out / "fonts" / "a.woff").is_file()
    assert (out / "robots.txt").is_file()
    assert not (out / "scss").exists()


def test_markup_assembles_includes_with_context(tmp_path):
    _write(
        tmp_path / "src" / "html" / "index.html",
        "<html>@@include('partials/header.html', {\"title\": \"Home\"})<main></main></html>\n",
    )
    _write(
        tmp_path / "src" / "html" / "partials" / "header.html",
        "<h1>@@title</h1>@@include(\"nav.html\")",
    )
    _write(tmp_path / "src" / "html" / "partials" / "nav.html", "<nav>@@title nav</nav>")
    config = _config(tmp_path, htmlAssets=["src/html/*.html"])

    markup.run(config)

    assert (tmp_path / "dist" / "index.html").read_text(encoding="utf-8") == (
        "<html><h1>Home</h1><nav>Home nav</nav><main></main></html>\n"
    )
    assert not (tmp_path / "dist" / "partials").exists()
    assert markup.watch_patterns(config) == ("src/html/**/*.html",)


def test_markup_detects_include_cycles(tmp_path):
    _write(tmp_path / "a.html", "@@include('b.html')")
    _write(tmp_path / "b.html", "@@include('a.html')")

    with pytest.raises(markup.MarkupIncludeError, match=r"include cycle"):
        markup.render(tmp_path / "a.html")


def test_markup_reports_missing_partials_and_bad_context(tmp_path):
    _write(tmp_path / "missing.html", "@@include('nope.html')")
    _write(tmp_path / "bad.html", "@@include('x.html', [1, 2])")

    with pytest.raises(markup.MarkupIncludeError, match=r"does not exist"):
        markup.render(tmp_path / "missing.html")
    with pytest.raises(markup.MarkupIncludeError, match=r"JSON object"):
        markup.render(tmp_path / "bad.html")


def test_scripts_fall_back_to_passthrough_without_esbuild(tmp_path, monkeypatch):
    monkeypatch.setattr(scripts, "find_binary", lambda *_args, **_kwargs: None)
    _write(
        tmp_path / "src" / "assets" / "js" / "app.js",
        "// greeting\nfunction greet( name ) {\n    return 'hi ' + name;\n}\n",
    )

    scripts.run(_config(tmp_path, entries=["src/assets/js/app.js"]))
    plain = (tmp_path / "dist" / "assets" / "js" / "app.js").read_text(encoding="utf-8")
    assert "// greeting" in plain

    scripts.run(_config(tmp_path, mode="production", entries=["src/assets/js/app.js"]))
    minified = (tmp_path / "dist" / "assets" / "js" / "app.js").read_text(encoding="utf-8")
    assert "// greeting" not in minified
    assert "function greet(name){" in minified


def test_esbuild_command_follows_the_mode(tmp_path, monkeypatch):
    captured: list[list[str]] = []

    class _Proc:
        returncode = 0
        stdout = b"bundled();\n"
        stderr = b""

    def _fake_run(cmd, **_kwargs):
        captured.append(list(cmd))
        return _Proc()

    monkeypatch.setattr(scripts.subprocess, "run", _fake_run)
    entry = tmp_path / "app.js"

    assert scripts.bundle_with_esbuild("esbuild", entry, _config(tmp_path, mode="production")) == b"bundled();\n"
    scripts.bundle_with_esbuild("esbuild", entry, _config(tmp_path, mode="development"))

    assert "--minify" in captured[0]
    assert "--sourcemap=inline" in captured[1]
    assert "--minify" not in captured[1]


def _gradient_jpeg(path) -> int:
    im = Image.new("RGB", (64, 64))
    im.putdata([((x * 7) % 256, (y * 13) % 256, (x * y) % 256) for y in range(64) for x in range(64)])
    path.parent.mkdir(parents=True, exist_ok=True)
    im.save(path, format="JPEG", quality=100)
    return path.stat().st_size


def test_images_are_copied_outside_production(tmp_path):
    original = _gradient_jpeg(tmp_path / "src" / "images" / "photo.jpg")

    images.run(_config(tmp_path, images=["src/images/**/*"]))

    out = tmp_path / "dist" / "assets" / "images" / "photo.jpg"
    assert out.stat().st_size == original


def test_images_are_compressed_in_production(tmp_path):
    original = _gradient_jpeg(tmp_path / "src" / "images" / "photos" / "photo.jpg")
    _write(
        tmp_path / "src" / "images" / "icon.svg",
        '<svg xmlns="http://www.w3.org/2000/svg">\n<!-- editor cruft -->\n'
        '<path d="M 0 0\n   L 10 10"/></svg>\n',
    )
    _write(tmp_path / "src" / "images" / "notes.txt", "keep me")

    images.run(_config(tmp_path, mode="production", images=["src/images/**/*"]))

    out = tmp_path / "dist" / "assets" / "images"
    assert (out / "photos" / "photo.jpg").stat().st_size < original
    with Image.open(out / "photos" / "photo.jpg") as im:
        assert im.format == "JPEG"
        assert im.size == (64, 64)
    svg = (out / "icon.svg").read_text(encoding="utf-8")
    assert "editor cruft" not in svg
    assert 'd="M 0 0 L 10 10"' in svg
    assert (out / "notes.txt").read_text(encoding="utf-8") == "keep me"


def test_png_output_is_never_larger_than_the_source(tmp_path):
    src = tmp_path / "src" / "images" / "flat.png"
    src.parent.mkdir(parents=True)
    buf = io.BytesIO()
    Image.new("RGBA", (32, 32), (255, 0, 0, 255)).save(buf, format="PNG")
    src.write_bytes(buf.getvalue())

    images.run(_config(tmp_path, mode="production", images=["src/images/*.png"]))

    assert (tmp_path / "dist" / "assets" / "images" / "flat.png").stat().st_size <= src.stat().st_size


def test_archive_name_uses_a_24_hour_timestamp():
    assert archive.archive_name("demo", datetime(2024, 5, 6, 14, 7)) == "demo_2024-05-06_14-07.zip"


def test_archive_zips_the_package_globs(tmp_path, monkeypatch):
    monkeypatch.setattr(archive, "_now", lambda: datetime(2024, 5, 6, 14, 7))
    _write(tmp_path / "style.css", "/* theme */")
    _write(tmp_path / "functions.php", "<?php")
    _write(tmp_path / "dist" / "assets" / "css" / "main.css", "body{}")
    _write(tmp_path / "node_modules" / "pkg" / "index.js")
    _write(tmp_path / "packaged" / "demo_2024-01-01_00-00.zip", "old")
    config = _config(tmp_path, package=["**/*", "!node_modules/**"])

    archive.run(config)

    zip_path = tmp_path / "packaged" / "demo_2024-05-06_14-07.zip"
    with zipfile.ZipFile(zip_path) as zf:
        names = zf.namelist()
        assert zf.read("functions.php") == b"<?php"
    assert names == sorted(names)
    assert "dist/assets/css/main.css" in names
    assert "style.css" in names
    assert not any(name.startswith(("node_modules/", "packaged/")) for name in names)


def test_archive_requires_package_globs(tmp_path):
    with pytest.raises(ValueError, match=r"PATHS\.package is empty"):
        archive.run(_config(tmp_path))


def test_phpcs_requires_the_binary_when_there_is_php(tmp_path, monkeypatch):
    monkeypatch.setattr(phpcs, "find_binary", lambda *_args, **_kwargs: None)
    _write(tmp_path / "functions.php", "<?php")

    with pytest.raises(ToolNotFoundError, match=r"phpcs"):
        phpcs.run(_config(tmp_path, phpcs=["**/*.php"]))


def test_phpcs_failure_carries_the_report(tmp_path, monkeypatch):
    class _Proc:
        returncode = 2
        stdout = "FILE: functions.php\nERROR | Missing doc comment"
        stderr = ""

    monkeypatch.setattr(phpcs, "find_binary", lambda *_args, **_kwargs: "/usr/bin/phpcs")
    monkeypatch.setattr(phpcs.subprocess, "run", lambda *_args, **_kwargs: _Proc())
    _write(tmp_path / "functions.php", "<?php")

    with pytest.raises(phpcs.PhpcsError) as excinfo:
        phpcs.run(_config(tmp_path, phpcs=["**/*.php"]))

    assert excinfo.value.returncode == 2
    assert "Missing doc comment" in excinfo.value.report


def _frames(size=(24, 24)) -> list:
    return [Image.new("RGB", size, color) for color in ((255, 0, 0), (0, 255, 0), (0, 0, 255))]


@pytest.mark.parametrize("name", ["spinner.png", "spinner.gif"])
def test_animated_images_keep_every_frame_in_production(tmp_path, name):
    src = tmp_path / "src" / "assets" / "images" / name
    src.parent.mkdir(parents=True)
    first, *rest = _frames()
    first.save(src, save_all=True, append_images=rest, duration=100, loop=0)

    images.run(_config(tmp_path, mode="production"))

    out = tmp_path / "dist" / "assets" / "images" / name
    assert out.read_bytes() == src.read_bytes()
    with Image.open(out) as im:
        assert im.n_frames == 3


def test_static_gif_stays_a_single_frame_gif(tmp_path):
    src = tmp_path / "src" / "assets" / "images" / "dot.gif"
    src.parent.mkdir(parents=True)
    im = Image.new("P", (40, 40))
    im.putdata([(x * y) % 64 for y in range(40) for x in range(40)])
    im.save(src, format="GIF")

    images.run(_config(tmp_path, mode="production"))

    out = tmp_path / "dist" / "assets" / "images" / "dot.gif"
    assert out.stat().st_size <= src.stat().st_size
    with Image.open(out) as result:
        assert result.format == "GIF"
        assert result.size == (40, 40)
        assert getattr(result, "n_frames", 1) == 1


def test_jpeg_recompression_keeps_the_colour_profile(tmp_path):
    profile = b"themekit-test-icc-profile" * 8
    src = tmp_path / "src" / "assets" / "images" / "photo.jpg"
    src.parent.mkdir(parents=True)
    im = Image.new("RGB", (64, 64))
    im.putdata([((x * 7) % 256, (y * 13) % 256, (x * y) % 256) for y in range(64) for x in range(64)])
    im.save(src, format="JPEG", quality=100, icc_profile=profile)

    images.run(_config(tmp_path, mode="production"))

    out = tmp_path / "dist" / "assets" / "images" / "photo.jpg"
    assert out.stat().st_size < src.stat().st_size
    with Image.open(out) as result:
        assert result.info.get("icc_profile") == profile


class _PostcssProc:
    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = ""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def _style_config(tmp_path, *, compatibility, mode="default") -> BuildConfig:
    cfg, _warnings = BuildConfig.from_dict(
        {"PATHS": {"dist": "dist"}, "COMPATIBILITY": compatibility},
        project_dir=str(tmp_path),
        mode=mode,
    )
    return cfg


def test_autoprefix_passes_compatibility_as_browserslist(tmp_path, monkeypatch):
    calls: list[dict] = []

    def _fake_run(cmd, **kwargs):
        calls.append({"cmd": list(cmd), **kwargs})
        return _PostcssProc(stdout="a{-webkit-b:c;b:c}")

    monkeypatch.setattr(style, "find_binary", lambda *_args, **_kwargs: "/opt/bin/postcss")
    monkeypatch.setattr(style.subprocess, "run", _fake_run)
    config = _style_config(tmp_path, compatibility=["last 2 versions", "ie >= 11"], mode="production")

    assert style.autoprefix("a{b:c}", config) == "a{-webkit-b:c;b:c}"

    (call,) = calls
    assert call["cmd"] == ["/opt/bin/postcss", "--use", "autoprefixer", "--no-map"]
    assert call["input"] == "a{b:c}"
    assert call["env"]["BROWSERSLIST"] == "last 2 versions, ie >= 11"


def test_autoprefix_is_skipped_without_compatibility_or_binary(tmp_path, monkeypatch):
    def _unexpected(*_args, **_kwargs):
        raise AssertionError("postcss should not run")

    monkeypatch.setattr(style.subprocess, "run", _unexpected)
    monkeypatch.setattr(style, "find_binary", lambda *_args, **_kwargs: "/opt/bin/postcss")
    assert style.autoprefix("a{b:c}", _style_config(tmp_path, compatibility=[])) == "a{b:c}"

    monkeypatch.setattr(style, "find_binary", lambda *_args, **_kwargs: None)
    assert style.autoprefix("a{b:c}", _style_config(tmp_path, compatibility=["> 1%"])) == "a{b:c}"


def test_autoprefix_failure_raises(tmp_path, monkeypatch):
    monkeypatch.setattr(style, "find_binary", lambda *_args, **_kwargs: "/opt/bin/postcss")
    monkeypatch.setattr(
        style.subprocess,
        "run",
        lambda *_args, **_kwargs: _PostcssProc(returncode=1, stderr="Cannot find module 'autoprefixer'"),
    )

    with pytest.raises(style.AutoprefixError, match=r"autoprefixer"):
        style.autoprefix("a{b:c}", _style_config(tmp_path, compatibility=["> 1%"]))


def test_esbuild_maps_jquery_to_the_page_global(tmp_path, monkeypatch):
    captured: list[list[str]] = []

    class _Proc:
        returncode = 0
        stdout = b""
        stderr = b""

    def _fake_run(cmd, **_kwargs):
        captured.append(list(cmd))
        return _Proc()

    monkeypatch.setattr(scripts.subprocess, "run", _fake_run)

    scripts.bundle_with_esbuild("esbuild", tmp_path / "app.js", _config(tmp_path))

    assert "--alias:jquery=./node_modules/.cache/themekit/jquery.js" in captured[0]
    shim = tmp_path / "node_modules" / ".cache" / "themekit" / "jquery.js"
    assert shim.read_text(encoding="utf-8") == "module.exports = window.jQuery;\n"
