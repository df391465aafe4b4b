from __future__ import annotations

import json

from style_grabber import main

STORE_URL = "https://shop.test/products/tee"


def test_main_prints_report(fake_web, capsys):
    fake_web.pages[STORE_URL] = '<form action="/cart/add"><button style="color: white">Add</button></form>'

    assert main([STORE_URL]) == 0

    out = capsys.readouterr().out
    assert json.loads(out) == {"fonts": [], "primaryButton": {"color": "white"}}


def test_main_writes_output_file(fake_web, tmp_path):
    fake_web.pages[STORE_URL] = '<form action="/cart/add"><button style="color: white">Add</button></form>'
    output = tmp_path / "report.json"

    assert main([STORE_URL, "--output", str(output)]) == 0

    assert json.loads(output.read_text(encoding="utf-8"))["primaryButton"] == {"color": "white"}


def test_main_reports_extraction_error(fake_web, capsys):
    fake_web.pages[STORE_URL] = "<p>sold out</p>"

    assert main([STORE_URL]) == 1

    last_line = capsys.readouterr().err.strip().splitlines()[-1]
    assert json.loads(last_line) == {"error": "Button not found"}
