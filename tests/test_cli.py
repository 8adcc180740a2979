from pypdf import PdfReader

from sitebook import cli
from sitebook.cli import main


def test_bind_renders_tree_and_removes_combined_html(site_tree, html_page, fake_renderer, tmp_path, capsys):
    root = site_tree({
        "a/index.html": html_page("<p>alpha</p>"),
        "b/page.html": html_page("<p>bravo</p>"),
        "c/index.html": html_page("<img src=\"{{ url_for('static', filename='img/x.png') }}\">"),
    }, root_name="X")
    output = tmp_path / "out" / "book.pdf"

    code = main(["bind", str(root), "--output", str(output), "--title", "Manual", "--keep-html"])

    assert code == 0
    assert "Wrote" in capsys.readouterr().out
    assert PdfReader(str(output)).metadata.title == "Manual"
    combined = (output.parent / cli.COMBINED_NAME).read_text(encoding="utf-8")
    assert combined.index("alpha") < combined.index("bravo") < combined.index('src="img/x.png"')
    assert "<script" not in combined
    assert fake_renderer[0][-1] == str(output)


def test_bind_cleans_up_combined_html_by_default(site_tree, html_page, fake_renderer, tmp_path):
    root = site_tree({"index.html": html_page("<p>home</p>")})
    output = tmp_path / "book.pdf"
    assert main(["bind", str(root), "--output", str(output)]) == 0
    assert output.exists()
    assert not (tmp_path / cli.COMBINED_NAME).exists()


def test_bind_with_no_documents_fails(site_tree, fake_renderer, tmp_path):
    root = site_tree({"style.css": "p {}"})
    assert main(["bind", str(root), "--output", str(tmp_path / "book.pdf")]) == 1
    assert fake_renderer == []


def test_bind_with_only_empty_pages_fails(site_tree, fake_renderer, tmp_path):
    root = site_tree({"blank.html": "<html><body> </body></html>"})
    assert main(["bind", str(root), "--output", str(tmp_path / "book.pdf")]) == 1
    assert fake_renderer == []


def test_render_failure_exits_non_zero_and_keeps_tree(site_tree, html_page, tmp_path, monkeypatch):
    root = site_tree({"index.html": html_page("<p>home</p>")})
    monkeypatch.setenv("SITEBOOK_WKHTMLTOPDF", str(tmp_path / "missing-renderer"))
    assert main(["bind", str(root), "--output", str(tmp_path / "book.pdf")]) == 1
    assert (root / "index.html").exists()


def test_missing_input_is_a_configuration_error(tmp_path):
    assert main(["bind", str(tmp_path / "nope")]) == 2


def test_fetch_rejects_bad_url():
    assert main(["fetch", "not-a-url"]) == 2


def fetch_args(tmp_path, *extra):
    return [
        "fetch", "https://docs.example.org/guide",
        "--output-root", str(tmp_path / "mirror"),
        "--transform", "none",
        "--no-preflight",
        *extra,
    ]


def test_fetch_success(fake_wget, tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("SITEBOOK_WGET", str(fake_wget()))
    assert main(fetch_args(tmp_path)) == 0
    assert "Downloaded" in capsys.readouterr().out
    assert (tmp_path / "mirror/docs.example.org/guide/index.html").exists()


def test_fetch_failure_exits_one_after_cleanup(fake_wget, tmp_path, monkeypatch):
    monkeypatch.setenv("SITEBOOK_WGET", str(fake_wget(status=4)))
    assert main(fetch_args(tmp_path)) == 1
    leftovers = [p for p in (tmp_path / "mirror").rglob("*") if p.name.endswith((".tmp", ".wget"))]
    assert leftovers == []


def test_run_downloads_then_binds(fake_wget, fake_renderer, tmp_path, monkeypatch):
    monkeypatch.setenv("SITEBOOK_WGET", str(fake_wget()))
    output = tmp_path / "docs.pdf"
    args = fetch_args(tmp_path, "--output", str(output))
    args[0] = "run"
    assert main(args) == 0
    assert output.exists()
    combined_source = fake_renderer[0][fake_renderer[0].index("page") + 1]
    assert combined_source.endswith(cli.COMBINED_NAME)


def test_run_stops_before_rendering_when_download_fails(fake_wget, fake_renderer, tmp_path, monkeypatch):
    monkeypatch.setenv("SITEBOOK_WGET", str(fake_wget(status=8)))
    args = fetch_args(tmp_path, "--output", str(tmp_path / "docs.pdf"))
    args[0] = "run"
    assert main(args) == 1
    assert fake_renderer == []
    assert not (tmp_path / "docs.pdf").exists()


def test_profile_keeps_combined_html_without_the_flag(site_tree, html_page, fake_renderer, tmp_path):
    root = site_tree({"index.html": html_page("<p>home</p>")})
    output = tmp_path / "book.pdf"
    profile = tmp_path / "book.profile"
    profile.write_text(f"---\nkeep_html: true\nworkers: 3\noutput: {output}\n---\n", encoding="utf-8")
    assert main(["--profile", str(profile), "bind", str(root)]) == 0
    assert output.exists()
    assert (tmp_path / cli.COMBINED_NAME).exists()
