# tests/test_documents.py

from rate_pipeline.documents import (
    extract_html_sections,
    extract_pdf_pages,
    load_html,
    normalize_whitespace,
)

from conftest import build_pdf


def test_pdf_pages_come_out_in_order_as_space_joined_words():
    raw = build_pdf([["Pagina uno", "12,60%   0,99%"], ["Pagina dos"]])

    pages = extract_pdf_pages(raw)

    assert pages == ["Pagina uno 12,60% 0,99%", "Pagina dos"]


def test_empty_pdf_page_gives_empty_block():
    pages = extract_pdf_pages(build_pdf([[], ["Tasas"]]))

    assert pages == ["", "Tasas"]


def test_normalize_whitespace_handles_invisible_characters():
    assert normalize_whitespace("  UVR\u200b +\xa06,10%\n\tE.A. ") == "UVR + 6,10% E.A."
    assert normalize_whitespace(None) == ""


def test_load_html_drops_scripts_and_styles():
    soup = load_html(b"<html><head><style>td{}</style></head><body><script>x=1</script><p>Tasas</p></body></html>")

    assert soup.find("script") is None
    assert soup.find("style") is None
    assert soup.get_text(strip=True) == "Tasas"


def test_html_sections_one_block_per_table():
    html = b"""
    <html><body>
      <table><tr><td>Cesantias</td><td>11,50%</td></tr></table>
      <section><h2>Leasing</h2><p>12,00%</p></section>
    </body></html>
    """

    assert extract_html_sections(html) == ["Cesantias 11,50%", "Leasing 12,00%"]


def test_html_without_sections_falls_back_to_body():
    assert extract_html_sections(b"<html><body><p>Sin   tablas</p></body></html>") == ["Sin tablas"]
    assert extract_html_sections(b"<html><body></body></html>") == []
