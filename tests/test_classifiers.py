"""Tests for the Target and Walmart availability classifiers."""
import pytest
from hypothesis import given, settings, strategies as st

from restock_monitor.classifiers import (
    TargetClassifier,
    WalmartClassifier,
    get_classifier,
)
from restock_monitor.models import Classification, Site, Status


target = TargetClassifier()
walmart = WalmartClassifier()


def _page(body: str) -> str:
    return f"<html><head><title>Product</title></head><body>{body}</body></html>"


# ---- Target -------------------------------------------------------------------

def test_target_in_stock_from_availability_status():
    html = _page('<script>{"product":{"availabilityStatus":"IN_STOCK"}}</script>')
    assert target.classify(html) == Classification(Status.IN_STOCK)


def test_target_in_stock_from_schema_org_availability():
    html = _page('<script type="application/ld+json">{"offers":{"availability":"https://schema.org/InStock"}}</script>')
    assert target.classify(html).status is Status.IN_STOCK


def test_target_sold_out_text_wins_over_flags():
    html = _page('<script>{"availabilityStatus":"OUT_OF_STOCK"}</script><div>Sold Out</div>')
    assert target.classify(html).status is Status.OOS


def test_target_sold_out_text_beats_in_stock_flag():
    html = _page('<script>{"availabilityStatus":"IN_STOCK"}</script><p>This item is out of stock</p>')
    assert target.classify(html).status is Status.OOS


def test_target_enum_value_is_not_a_phrase():
    # OUT_OF_STOCK as a flag is not visible text; the flag rule handles it.
    html = _page('<script>{"availabilityStatus":"OUT_OF_STOCK"}</script><button>Add to cart</button>')
    assert target.classify(html).status is Status.OOS


def test_target_preorder_flag():
    html = _page('<script>{"availabilityStatus":"PRE_ORDER_SELLABLE"}</script>')
    assert target.classify(html).status is Status.PREORDER


def test_target_preorder_ignored_when_also_in_stock():
    html = _page('<script>{"availabilityStatus":"PRE_ORDER","availability":"InStock"}</script>')
    assert target.classify(html).status is Status.IN_STOCK


def test_target_conflicting_flags_fall_through_to_oos():
    html = _page(
        '<script>{"availabilityStatus":"IN_STOCK","availability":"OutOfStock"}</script>'
        "<button>Add to cart</button>"
    )
    assert target.classify(html).status is Status.OOS


@pytest.mark.parametrize("label", ["Add to cart", "Ship it", "Pick up here", "Buy now"])
def test_target_enabled_purchase_button(label):
    html = _page(f'<button type="button">{label}</button>')
    assert target.classify(html).status is Status.IN_STOCK


def test_target_link_styled_as_button():
    html = _page('<a class="button" href="/cart">Add to Cart</a>')
    assert target.classify(html).status is Status.IN_STOCK


def test_target_disabled_button_is_ignored():
    html = _page("<button disabled>Add to cart</button>")
    assert target.classify(html).status is Status.OOS


def test_target_aria_disabled_button_is_ignored():
    html = _page('<button aria-disabled="true">Ship it</button>')
    assert target.classify(html).status is Status.OOS


def test_target_no_signal_defaults_to_oos():
    assert target.classify(_page("<h1>Trading cards</h1>")).status is Status.OOS


@pytest.mark.parametrize("markup", ["", "<<<>>>", "<button", None])
def test_target_malformed_markup_is_oos(markup):
    assert target.classify(markup).status is Status.OOS


def test_target_parser_error_resolves_to_fail_safe(monkeypatch):
    def boom(self, markup):
        raise RuntimeError("parser exploded")

    monkeypatch.setattr(TargetClassifier, "_has_enabled_purchase_button", boom)
    assert target.classify(_page("<button>Add to cart</button>")) == Classification(Status.OOS)


negative_phrases = st.sampled_from(
    ["sold out", "Sold Out", "SOLD OUT", "sold  out", "out of stock", "Out Of Stock", "OUT OF STOCK"]
)
noise = st.text(alphabet=st.characters(blacklist_categories=("Cs",)), max_size=80)
positive_signals = st.sampled_from(
    [
        "",
        '{"availabilityStatus":"IN_STOCK"}',
        '{"availability":"https://schema.org/InStock"}',
        "<button>Add to cart</button>",
        '{"availabilityStatus":"PRE_ORDER"}',
    ]
)


@settings(max_examples=100)
@given(before=noise, after=noise, phrase=negative_phrases, signal=positive_signals)
def test_target_negative_phrase_always_oos(before, after, phrase, signal):
    html = f"{before} {signal} <div> {phrase} </div> {after}"
    assert target.classify(html).status is Status.OOS


# ---- Walmart ------------------------------------------------------------------

def test_walmart_in_stock_sold_by_walmart():
    html = _page('<script>{"availabilityStatus":"IN_STOCK","sellerName":"Walmart"}</script>')
    assert walmart.classify(html) == Classification(Status.IN_STOCK, is_first_party=True)


def test_walmart_first_party_from_text():
    html = _page('<script>{"addToCartButtonState":"ENABLED"}</script><span>Sold and shipped by Walmart.com</span>')
    assert walmart.classify(html) == Classification(Status.IN_STOCK, is_first_party=True)


def test_walmart_first_party_from_seller_type():
    html = _page('<script>{"availability":"InStock","sellerType":"INTERNAL"}</script>')
    assert walmart.classify(html) == Classification(Status.IN_STOCK, is_first_party=True)


def test_walmart_in_stock_third_party():
    html = _page('<script>{"availabilityStatus":"IN_STOCK","sellerName":"Cards Galore LLC"}</script>')
    assert walmart.classify(html) == Classification(Status.THIRD_PARTY, is_first_party=False)


def test_walmart_sold_out_short_circuits_first_party():
    html = _page('<script>{"sellerName":"Walmart","availabilityStatus":"IN_STOCK"}</script><b>Sold out</b>')
    assert walmart.classify(html) == Classification(Status.OOS, is_first_party=False)


def test_walmart_structured_out_of_stock():
    html = _page('<script>{"availabilityStatus":"OUT_OF_STOCK","sellerName":"Walmart"}</script>')
    assert walmart.classify(html) == Classification(Status.OOS, is_first_party=False)


def test_walmart_no_stock_signal_keeps_first_party_flag():
    html = _page('<script>{"sellerName":"Walmart"}</script>')
    assert walmart.classify(html) == Classification(Status.OOS, is_first_party=True)


def test_walmart_empty_page():
    assert walmart.classify("") == Classification(Status.OOS, is_first_party=False)


# ---- Registry -----------------------------------------------------------------

def test_get_classifier_by_site():
    assert isinstance(get_classifier(Site.TARGET), TargetClassifier)
    assert isinstance(get_classifier("walmart"), WalmartClassifier)


def test_get_classifier_unknown_site():
    with pytest.raises(ValueError):
        get_classifier("bestbuy")
