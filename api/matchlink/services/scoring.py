from __future__ import annotations

from typing import Any

DEFAULT_EXPECTATIONS: dict[str, Any] = {
    "age": {"from": 21, "to": 36},
    "community": [],
    "country": [],
    "state": [],
    "marital_status": "No Preference",
    "education": [],
    "alcohol": "occasionally",
    "profession": [],
}

NO_PREFERENCE = {"", "any", "no preference", "doesn't matter", "open to all"}


def with_defaults(expectations: dict[str, Any] | None) -> dict[str, Any]:
    out = dict(DEFAULT_EXPECTATIONS)
    for key, value in (expectations or {}).items():
        if value is not None:
            out[key] = value
    return out


def to_string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, dict):
        flat: list[Any] = []
        for v in value.values():
            flat.extend(v if isinstance(v, list) else [v])
        value = flat
    if not isinstance(value, (list, tuple, set)):
        value = [value]
    return [str(v).strip() for v in value if str(v).strip()]


def is_no_preference(values: list[str] | str | None) -> bool:
    items = to_string_list(values)
    if not items:
        return True
    return all(v.lower() in NO_PREFERENCE for v in items)


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def age_overlap_score(expect: dict[str, Any], candidate_age: int | None) -> int:
    if candidate_age is None:
        return 0
    low = _to_int((expect or {}).get("from")) or DEFAULT_EXPECTATIONS["age"]["from"]
    high = _to_int((expect or {}).get("to")) or DEFAULT_EXPECTATIONS["age"]["to"]
    if low > high:
        low, high = high, low
    if low <= candidate_age <= high:
        return 100
    dist = min(abs(candidate_age - low), abs(candidate_age - high))
    return max(1, round(100 - dist * 10))


def include_exclude_score(preferred: Any, candidate_values: Any) -> int:
    """Preferences may carry "not X" entries which exclude X outright."""
    prefs = to_string_list(preferred)
    cand = [c.lower() for c in to_string_list(candidate_values)]
    if is_no_preference(prefs):
        return 100 if cand else 0
    if not cand:
        return 1
    include = [p.lower() for p in prefs if not p.lower().startswith("not ")]
    exclude = [p[4:].lower() for p in prefs if p.lower().startswith("not ")]
    if any(e in cand for e in exclude):
        return 1
    if not include or any(i in cand for i in include):
        return 100
    return 1


def location_score(expect: dict[str, Any], attrs: dict[str, Any]) -> tuple[int, list[str]]:
    reasons: list[str] = []
    score = 1
    countries = [c.lower() for c in to_string_list(expect.get("country"))]
    states = [s.lower() for s in to_string_list(expect.get("state"))]
    cand_country = [c.lower() for c in to_string_list(attrs.get("country"))]
    cand_state = [s.lower() for s in to_string_list(attrs.get("state"))]
    if not countries and not states:
        return 100, reasons
    if countries and any(c in cand_country for c in countries):
        score = 100
        reasons.append("Same country")
    if states and any(s in cand_state for s in states):
        score = 100
        reasons.append("Same state")
    return score, reasons


def marital_score(expect: dict[str, Any], attrs: dict[str, Any]) -> int:
    wanted = expect.get("marital_status")
    if is_no_preference(wanted):
        return 100
    cand = str(attrs.get("marital_status") or "").strip().lower()
    return 100 if cand and cand in [w.lower() for w in to_string_list(wanted)] else 1


def education_score(expect: dict[str, Any], attrs: dict[str, Any]) -> int:
    prefs = to_string_list(expect.get("education"))
    level = str(attrs.get("education") or "").strip().lower()
    if is_no_preference(prefs):
        return 80
    if not level:
        return 50
    tokens = level.replace("-", " ").replace("_", " ").split()
    exclude = [p[4:].lower() for p in prefs if p.lower().startswith("not ")]
    if any(e == level or e in tokens for e in exclude):
        return 1
    include = [p.lower() for p in prefs if not p.lower().startswith("not ")]
    return 100 if any(i == level or i in tokens for i in include) else 50


def alcohol_score(expect: dict[str, Any], attrs: dict[str, Any]) -> int:
    pref = str(expect.get("alcohol") or "").strip().lower()
    drinks = attrs.get("drinks_alcohol")
    if is_no_preference(pref) or pref == "occasionally":
        return 100
    if pref == "yes" and drinks is True:
        return 100
    if pref == "no" and drinks is False:
        return 100
    return 1


def compute_score(
    expectations: dict[str, Any] | None,
    candidate_attributes: dict[str, Any] | None,
    weights: dict[str, float],
) -> tuple[int, list[str]]:
    """Weighted 0-100 score of how well a candidate fits the viewer's expectations."""
    expect = with_defaults(expectations)
    attrs = candidate_attributes or {}
    reasons: list[str] = []

    parts: dict[str, int] = {}
    parts["age"] = age_overlap_score(expect.get("age") or {}, _to_int(attrs.get("age")))
    if parts["age"] >= 80:
        reasons.append("Age within preferred range")

    parts["community"] = include_exclude_score(expect.get("community"), attrs.get("community"))
    if parts["community"] > 1 and not is_no_preference(expect.get("community")):
        reasons.append("Community preference matched")

    parts["location"], location_reasons = location_score(expect, attrs)
    reasons.extend(location_reasons)

    parts["marital_status"] = marital_score(expect, attrs)
    if parts["marital_status"] > 1:
        reasons.append("Marital status match")

    parts["education"] = education_score(expect, attrs)
    if parts["education"] >= 80:
        reasons.append("Education matches")

    parts["alcohol"] = alcohol_score(expect, attrs)
    if parts["alcohol"] > 1:
        reasons.append("Alcohol preference matches")

    parts["profession"] = include_exclude_score(expect.get("profession"), attrs.get("profession"))
    if parts["profession"] > 1 and not is_no_preference(expect.get("profession")):
        reasons.append("Profession preference matched")

    total_weight = sum(max(0.0, float(weights.get(k, 0.0))) for k in parts)
    if total_weight <= 0:
        return 0, []
    weighted = sum(parts[k] * max(0.0, float(weights.get(k, 0.0))) for k in parts)
    score = max(0, min(100, round(weighted / total_weight)))
    return int(score), list(dict.fromkeys(reasons))
