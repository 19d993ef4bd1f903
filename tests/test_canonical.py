# tests/test_canonical.py

import pytest

from rate_pipeline.canonical import (
    OFFER_ID_LENGTH,
    SourceMeta,
    build_offer,
    build_rate,
    content_fingerprint,
    generate_offer_id,
)
from rate_pipeline.config_banks import BANKS
from rate_pipeline.config_behavior import MAX_EXCERPT_LEN
from rate_pipeline.models import (
    BankId,
    Channel,
    CurrencyIndex,
    ExtractedRate,
    ExtractionMethod,
    FixedRate,
    IndexedSpreadRate,
    ProductType,
    Segment,
)

from conftest import make_offer

ID_ARGS = dict(
    bank_id=BankId.DAVIVIENDA,
    product_type=ProductType.HIPOTECARIO,
    currency_index=CurrencyIndex.COP,
    segment=Segment.VIS,
    channel=Channel.UNSPECIFIED,
    rate_from=12.6,
)


def test_offer_id_is_deterministic_and_fixed_width():
    first = generate_offer_id(**ID_ARGS)
    second = generate_offer_id(**ID_ARGS)

    assert first == second
    assert len(first) == OFFER_ID_LENGTH
    int(first, 16)  # hex


def test_offer_id_changes_with_every_identifying_field():
    base = generate_offer_id(**ID_ARGS)
    variants = [
        dict(ID_ARGS, bank_id=BankId.BANCO_DE_BOGOTA),
        dict(ID_ARGS, product_type=ProductType.LEASING),
        dict(ID_ARGS, currency_index=CurrencyIndex.UVR),
        dict(ID_ARGS, segment=Segment.NO_VIS),
        dict(ID_ARGS, channel=Channel.DIGITAL),
        dict(ID_ARGS, rate_from=12.5),
    ]

    ids = {generate_offer_id(**v) for v in variants}
    assert base not in ids
    assert len(ids) == len(variants)


def test_offer_id_ignores_trailing_zeros_in_rate():
    assert generate_offer_id(**dict(ID_ARGS, rate_from=12.60)) == generate_offer_id(
        **dict(ID_ARGS, rate_from=12.6)
    )


def test_offer_id_accepts_plain_string_bank_id():
    assert generate_offer_id(**dict(ID_ARGS, bank_id="davivienda")) == generate_offer_id(**ID_ARGS)


def test_content_fingerprint_is_stable_and_byte_sensitive():
    doc = b"%PDF-1.7 FINANCIACION DE VIVIENDA 12,60%"

    assert content_fingerprint(doc) == content_fingerprint(bytes(doc))
    assert len(content_fingerprint(doc)) == 64

    changed = bytearray(doc)
    changed[-2] = ord("1")
    assert content_fingerprint(bytes(changed)) != content_fingerprint(doc)


def test_content_fingerprint_encodes_text_as_utf8():
    assert content_fingerprint("Bogotá") == content_fingerprint("Bogotá".encode("utf-8"))


def test_build_rate_maps_currency_to_rate_kind():
    cop = build_rate(
        ExtractedRate(
            product_type=ProductType.HIPOTECARIO,
            currency_index=CurrencyIndex.COP,
            segment=Segment.VIS,
            rate_from=12.6,
            monthly_from=0.99,
        )
    )
    uvr = build_rate(
        ExtractedRate(
            product_type=ProductType.HIPOTECARIO,
            currency_index=CurrencyIndex.UVR,
            segment=Segment.VIS,
            rate_from=6.95,
            rate_to=7.5,
        )
    )

    assert isinstance(cop, FixedRate)
    assert cop.percent_from == 12.6
    assert cop.monthly_from == 0.99
    assert isinstance(uvr, IndexedSpreadRate)
    assert (uvr.spread_from, uvr.spread_to) == (6.95, 7.5)


def test_rate_ranges_must_not_be_inverted():
    with pytest.raises(ValueError):
        FixedRate(percent_from=13.0, percent_to=12.0)
    with pytest.raises(ValueError):
        IndexedSpreadRate(spread_from=7.0, spread_to=6.0)
    with pytest.raises(ValueError):
        FixedRate(percent_from=12.0, monthly_from=1.0, monthly_to=0.9)


def test_build_offer_fills_audit_trail():
    offer = make_offer(rate_from=12.6, locator="vivienda_section:hipotecario_vis")

    assert offer.id == generate_offer_id(**ID_ARGS)
    assert offer.bank_name == "Davivienda"
    assert offer.source.extraction.method == ExtractionMethod.REGEX
    assert offer.source.extraction.locator == "vivienda_section:hipotecario_vis"
    assert offer.source.extraction.excerpt == "HIPOTECARIO VIS 12.6%"
    assert offer.conditions.payroll_discount is None


def test_build_offer_truncates_and_collapses_excerpt():
    offer = make_offer()
    extracted = ExtractedRate(
        product_type=ProductType.HIPOTECARIO,
        currency_index=CurrencyIndex.COP,
        segment=Segment.VIS,
        rate_from=12.6,
        description="Credito   hipotecario\n" + "x" * 300,
    )
    meta = SourceMeta(
        url="https://x.test",
        source_type=offer.source.source_type,
        document_label="doc",
        retrieved_at=offer.source.retrieved_at,
        content_fingerprint="f" * 64,
    )
    built = build_offer(BANKS[BankId.DAVIVIENDA], extracted, Channel.UNSPECIFIED, meta)

    assert len(built.source.extraction.excerpt) == MAX_EXCERPT_LEN
    assert built.source.extraction.excerpt.startswith("Credito hipotecario x")


def test_offer_serializes_to_json_safe_dict():
    record = make_offer(currency_index=CurrencyIndex.UVR, rate_from=6.95).to_serializable_dict()

    assert record["bank_id"] == "davivienda"
    assert record["rate"] == {"spread_from": 6.95, "kind": "INDEXED_SPREAD"}
    assert record["conditions"] == {}
    assert record["source"]["source_type"] == "PDF"
    assert record["source"]["extraction"]["method"] == "REGEX"
    assert record["source"]["retrieved_at"].startswith("2026-03-10T12:00:00")
