import random
from datetime import datetime, timezone
from typing import Any

from .. import repo

COMMUNITIES = ["Tamil", "Telugu", "Malayali", "Kannada", "Marathi", "Bengali", "Punjabi", "Gujarati"]
COUNTRIES = {
    "India": ["Karnataka", "Kerala", "Tamil Nadu", "Maharashtra", "Punjab"],
    "United States": ["California", "New York", "Texas", "New Jersey"],
    "United Kingdom": ["England", "Scotland"],
}
EDUCATION_LEVELS = ["high school", "bachelors", "masters", "doctorate"]
PROFESSIONS = ["engineer", "doctor", "teacher", "designer", "lawyer", "accountant", "researcher"]
MARITAL_STATUSES = ["Never Married", "Divorced", "Widowed"]
FIRST_NAMES = ["Asha", "Ravi", "Meera", "Arjun", "Divya", "Karthik", "Nisha", "Vikram", "Priya", "Rahul"]


def _pick_location(rng: random.Random) -> tuple[str, str]:
    country = rng.choice(list(COUNTRIES.keys()))
    return country, rng.choice(COUNTRIES[country])


def build_demo_member(rng: random.Random, index: int) -> dict[str, Any]:
    country, state = _pick_location(rng)
    age = rng.randint(22, 40)
    attributes = {
        "age": age,
        "community": rng.choice(COMMUNITIES),
        "country": country,
        "state": state,
        "marital_status": rng.choices(MARITAL_STATUSES, weights=[0.8, 0.15, 0.05], k=1)[0],
        "education": rng.choice(EDUCATION_LEVELS),
        "drinks_alcohol": rng.random() < 0.4,
        "profession": rng.choice(PROFESSIONS),
    }
    low = max(21, age - rng.randint(2, 5))
    expectations = {
        "age": {"from": low, "to": low + rng.randint(5, 10)},
        "community": rng.sample(COMMUNITIES, k=rng.randint(0, 2)),
        "country": [country] if rng.random() < 0.6 else [],
        "marital_status": "No Preference" if rng.random() < 0.5 else "Never Married",
        "education": rng.sample(EDUCATION_LEVELS[1:], k=rng.randint(0, 2)),
        "alcohol": rng.choice(["occasionally", "yes", "no"]),
        "profession": [],
    }
    return {
        "member_id": f"demo-{index:04d}",
        "display_name": f"{rng.choice(FIRST_NAMES)} {index}",
        "attributes": attributes,
        "expectations": expectations,
    }


def seed_demo_members(db, count: int = 50, seed: int = 7, approved_ratio: float = 0.9) -> dict[str, int]:
    rng = random.Random(seed)
    now = datetime.now(timezone.utc)
    approved = 0
    for i in range(count):
        member = build_demo_member(rng, i)
        is_approved = rng.random() < approved_ratio
        approved += int(is_approved)
        repo.upsert_member(
            db,
            approved=is_approved,
            visible=True,
            profile_updated_at=now,
            **member,
        )
    return {"members": count, "approved": approved}
