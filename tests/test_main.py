import json
import logging

import pytest

import main


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def write_site(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    (site / "index.html").write_text(
        '<p>cat cat dog</p><a href="/next.html">next</a>', encoding="utf-8"
    )
    (site / "next.html").write_text("<p>cat bird</p>", encoding="utf-8")
    return site


def write_config(tmp_path, seed):
    path = tmp_path / "config.yaml"
    path.write_text(f"""
crawler:
  seed_urls: ["{seed}"]
  max_depth: 1
  timeout_seconds: 30
  popular_word_count: 3
logging:
  file: ""
""", encoding="utf-8")
    return path


def test_crawl_of_local_site_writes_result_file(tmp_path):
    site = write_site(tmp_path)
    config = write_config(tmp_path, (site / "index.html").as_uri())
    output = tmp_path / "result.json"

    exit_code = main.main(["--config", str(config), "--max-depth", "2", "--output", str(output)])

    assert exit_code == 0
    assert json.loads(output.read_text(encoding="utf-8")) == {
        "wordFrequencyMap": {"cat": 3, "next": 1, "bird": 1},
        "totalUrlsVisited": 2,
    }


def test_result_goes_to_stdout_without_output_path(tmp_path, capsys):
    site = write_site(tmp_path)
    config = write_config(tmp_path, (site / "index.html").as_uri())

    exit_code = main.main(["--config", str(config), "--sequential"])

    assert exit_code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["totalUrlsVisited"] == 1
    assert data["wordFrequencyMap"] == {"cat": 2, "next": 1, "dog": 1}


def test_dry_run_does_not_crawl(tmp_path, capsys):
    site = write_site(tmp_path)
    config = write_config(tmp_path, (site / "index.html").as_uri())

    assert main.main(["--config", str(config), "--dry-run"]) == 0
    assert capsys.readouterr().out == ""


def test_missing_config_file_fails(tmp_path):
    assert main.main(["--config", str(tmp_path / "absent.yaml")]) == 1


def test_invalid_configuration_fails(tmp_path):
    config = write_config(tmp_path, "http://site.test/")
    path = tmp_path / "bad.yaml"
    path.write_text("crawler:\n  seed_urls: []\n", encoding="utf-8")

    assert main.main(["--config", str(path)]) == 1
    assert main.main(["--config", str(config), "--max-depth", "0"]) == 1


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main.main(["--version"])

    assert exc_info.value.code == 0
    assert "Word Crawler" in capsys.readouterr().out
