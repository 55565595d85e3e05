from matchlink.config import DEFAULT_SCORING_WEIGHTS
from matchlink.services.scoring import (
    age_overlap_score,
    compute_score,
    include_exclude_score,
    is_no_preference,
)

IDEAL_CANDIDATE = {
    "age": 28,
    "community": "Tamil",
    "country": "India",
    "state": "Karnataka",
    "marital_status": "Never Married",
    "education": "masters",
    "drinks_alcohol": False,
    "profession": "engineer",
}


def test_age_inside_range_is_full_score_and_decays_outside():
    assert age_overlap_score({"from": 25, "to": 30}, 27) == 100
    assert age_overlap_score({"from": 25, "to": 30}, 32) == 80
    assert age_overlap_score({"from": 25, "to": 30}, 60) == 1
    assert age_overlap_score({"from": 25, "to": 30}, None) == 0


def test_exclusion_entries_override_inclusion():
    assert include_exclude_score(["Tamil", "not Telugu"], "Tamil") == 100
    assert include_exclude_score(["not Telugu"], "Telugu") == 1
    assert include_exclude_score(["not Telugu"], "Tamil") == 100
    assert include_exclude_score([], "Tamil") == 100


def test_no_preference_markers():
    assert is_no_preference("No Preference")
    assert is_no_preference([])
    assert not is_no_preference(["Tamil"])


def test_matching_candidate_scores_high_with_reasons():
    expectations = {
        "age": {"from": 25, "to": 32},
        "community": ["Tamil"],
        "country": ["India"],
        "marital_status": "Never Married",
        "education": ["masters"],
        "alcohol": "no",
        "profession": ["engineer"],
    }
    score, reasons = compute_score(expectations, IDEAL_CANDIDATE, DEFAULT_SCORING_WEIGHTS)
    assert score == 100
    assert "Age within preferred range" in reasons
    assert "Same country" in reasons
    assert len(reasons) == len(set(reasons))


def test_score_is_bounded_for_hostile_inputs():
    weird = [
        ({}, {}),
        ({"age": {"from": "x", "to": None}}, {"age": "old"}),
        ({"community": ["not Tamil"]}, IDEAL_CANDIDATE),
        (None, None),
    ]
    for expectations, attrs in weird:
        score, _ = compute_score(expectations, attrs, DEFAULT_SCORING_WEIGHTS)
        assert 0 <= score <= 100


def test_weights_shift_the_score_and_zero_weights_yield_zero():
    expectations = {"age": {"from": 40, "to": 45}}
    age_heavy = dict(DEFAULT_SCORING_WEIGHTS, age=1000)
    heavy, _ = compute_score(expectations, IDEAL_CANDIDATE, age_heavy)
    default, _ = compute_score(expectations, IDEAL_CANDIDATE, DEFAULT_SCORING_WEIGHTS)
    assert heavy < default
    assert compute_score(expectations, IDEAL_CANDIDATE, {k: 0 for k in DEFAULT_SCORING_WEIGHTS}) == (0, [])
