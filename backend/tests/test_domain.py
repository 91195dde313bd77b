from decimal import Decimal
from types import SimpleNamespace

import pytest

from domain.hierarchy.designation import in_sibling_order, is_contiguous, label, number, parse_start
from domain.pricing.calculations import (
    DEFAULT_COEFFICIENT,
    line_totals,
    margin_coefficient,
    money,
    sell_price,
    total,
    unit_price,
)
from domain.shared.events import EventAction, HierarchyEvent, merge_changes, sanitize_changes


# =============================================================================
# Pricing
# =============================================================================

def test_line_totals_use_catalog_price():
    totals = line_totals(Decimal('3'), Decimal('10.00'), Decimal('20'))

    assert totals.unit_price == Decimal('10.00')
    assert totals.prix_total_ht == Decimal('30.00')
    assert totals.total_ttc == Decimal('36.00')


def test_line_totals_override_wins_over_catalog_price():
    totals = line_totals(2, '10.00', 0, price_override='12.50')

    assert totals.prix_total_ht == Decimal('25.00')
    assert totals.total_ttc == Decimal('25.00')


def test_line_totals_treat_missing_values_as_zero():
    totals = line_totals(None, None, None)

    assert totals.prix_total_ht == Decimal('0.00')
    assert totals.total_ttc == Decimal('0.00')


def test_money_rounds_half_up_to_the_cent():
    assert money('2.345') == Decimal('2.35')
    assert money(None) == Decimal('0.00')


def test_total_ignores_missing_amounts():
    assert total(['1.10', None, Decimal('2.20')]) == Decimal('3.30')


@pytest.mark.parametrize(
    ('pt', 'quantite', 'expected'),
    (
        ('50', '2', Decimal('25.00')),
        ('10', '3', Decimal('3.33')),
        ('50', '0', None),
        ('50', '-1', None),
        ('50', None, None),
    ),
)
def test_unit_price(pt, quantite, expected):
    assert unit_price(pt, quantite) == expected


def test_margin_coefficient():
    assert margin_coefficient(10, 10) == Decimal('1.25')
    assert margin_coefficient(0, 0) == Decimal('1')


@pytest.mark.parametrize(('brut', 'net'), ((60, 40), (70, 50), ('NaN', 0)))
def test_margin_coefficient_falls_back_to_default(brut, net):
    assert margin_coefficient(brut, net) == DEFAULT_COEFFICIENT


def test_sell_price():
    assert sell_price('100', Decimal('1.25')) == Decimal('125.00')


# =============================================================================
# Designations
# =============================================================================

@pytest.mark.parametrize(
    ('start_label', 'expected'),
    ((None, 1), ('', 1), ('3', 3), ('2.4', 4), ('x', 1), ('0', 1)),
)
def test_parse_start(start_label, expected):
    assert parse_start(start_label) == expected


def test_number_follows_sibling_order():
    nodes = [
        SimpleNamespace(pk=7, position=2),
        SimpleNamespace(pk=9, position=1),
        SimpleNamespace(pk=3, position=2),
    ]

    labelled = number(in_sibling_order(nodes), prefix='4')

    assert [(node.pk, value) for node, value in labelled] == [(9, '4.1'), (3, '4.2'), (7, '4.3')]


def test_label_without_prefix():
    assert label(5) == '5'
    assert label(5, prefix='') == '5'


def test_is_contiguous():
    assert is_contiguous(['1.1', '1.2', '1.3'])
    assert is_contiguous(['3', '4'], start=3)
    assert not is_contiguous(['1', '3'])
    assert not is_contiguous(['1', '1'])


# =============================================================================
# Events
# =============================================================================

def test_sanitize_changes_drops_empty_and_unchanged_entries():
    changes = {
        'nom': {'from': 'A', 'to': 'B'},
        'description': {'from': 'x', 'to': ''},
        'marge_brut': {'from': '10', 'to': '10'},
        'broken': 'not a diff',
    }

    assert sanitize_changes(changes) == {'nom': {'from': 'A', 'to': 'B'}}


def test_merge_changes_keeps_first_from_value():
    merged = merge_changes(
        {'nom': {'from': 'A', 'to': 'B'}},
        {'nom': {'from': 'B', 'to': 'C'}, 'description': {'from': '', 'to': 'neuf'}},
    )

    assert merged == {
        'nom': {'from': 'A', 'to': 'C'},
        'description': {'from': '', 'to': 'neuf'},
    }


def test_merge_changes_drops_fields_back_to_their_original_value():
    merged = merge_changes({'nom': {'from': 'A', 'to': 'B'}}, {'nom': {'from': 'B', 'to': 'A'}})

    assert merged == {}


def test_action_labels_are_french():
    assert EventAction.BLOC_DELETED.label == 'Bloc supprimé'
    assert EventAction.GBLOC_CREATED.label == 'Ouvrage créé'


def test_touches_designation():
    assert HierarchyEvent(action=EventAction.BLOC_CREATED).touches_designation
    assert not HierarchyEvent(action=EventAction.ARTICLE_UPDATED).touches_designation
    assert not HierarchyEvent(
        action=EventAction.GBLOC_UPDATED,
        metadata={'changes': {'nom': {'from': 'a', 'to': 'b'}}},
    ).touches_designation
    assert HierarchyEvent(
        action=EventAction.GBLOC_UPDATED,
        metadata={'changes': {'designation': {'from': '1', 'to': '4'}}},
    ).touches_designation


def test_as_system_event_returns_flagged_copy():
    draft = HierarchyEvent(action=EventAction.PROJECT_RECALCULATED)

    system = draft.as_system_event()

    assert system.is_system_event
    assert not draft.is_system_event
    assert system.event_id == draft.event_id
