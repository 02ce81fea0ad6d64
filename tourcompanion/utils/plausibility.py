"""Plausibility policy — decide whether a record "looks real" before notifying.

Rules are data (marker list, per-kind minimum lengths, repeated-character
pattern, structural keys) so the policy can be tuned without touching call
sites.

Business Rules:
- Every checked field must be present and non-empty
- Title/name fields >= 3 chars, description/purpose >= 10, lead question >= 5
- No field may contain a test marker (case-insensitive substring)
- No field may be a single letter repeated 3+ times ("xxxx", "aaa")
- Structural keys (own id + ownership foreign key) must be present, proving
  the record is a stored row and not a fabricated object

Called by: services/notification_service.py
"""

import re
from dataclasses import dataclass

TEST_MARKERS = ("test", "fake", "sample", "dummy", "xxxx", "fdgdg", "vcxvx")
REPEATED_CHAR = re.compile(r"^([a-z])\1{2,}$", re.IGNORECASE)

NOTIFICATION_MIN_TITLE = 3
NOTIFICATION_MIN_MESSAGE = 10
NOTIFICATION_SOURCE_KEYS = ("request_id", "chatbot_request_id", "lead_id", "system_event")


@dataclass(frozen=True)
class FieldRule:
    name: str
    min_length: int


@dataclass(frozen=True)
class RecordPolicy:
    fields: tuple[FieldRule, ...]
    structural_keys: tuple[str, ...]
    markers: tuple[str, ...] = TEST_MARKERS


POLICIES: dict[str, RecordPolicy] = {
    "request": RecordPolicy(
        fields=(FieldRule("title", 3), FieldRule("description", 10)),
        structural_keys=("id", "project_id"),
    ),
    "chatbot_request": RecordPolicy(
        fields=(FieldRule("chatbot_name", 3), FieldRule("chatbot_purpose", 10)),
        structural_keys=("id", "creator_id"),
    ),
    "lead": RecordPolicy(
        fields=(FieldRule("question_asked", 5),),
        structural_keys=("id", "chatbot_id"),
    ),
}


def _text_problem(value: str, min_length: int, markers: tuple[str, ...]) -> str | None:
    if len(value) < min_length:
        return f"shorter than {min_length}"
    lowered = value.lower()
    for marker in markers:
        if marker in lowered:
            return f"contains {marker!r}"
    if REPEATED_CHAR.match(value):
        return "repeated character"
    return None


def rejection_reason(kind: str, record: dict | None) -> str | None:
    """Why a record fails the policy, or None when it passes."""
    policy = POLICIES.get(kind)
    if policy is None:
        return f"no policy for {kind!r}"
    if not record:
        return "empty record"

    for key in policy.structural_keys:
        if not record.get(key):
            return f"missing {key}"

    for rule in policy.fields:
        value = record.get(rule.name)
        if not isinstance(value, str) or not value.strip():
            return f"{rule.name} missing"
        problem = _text_problem(value.strip(), rule.min_length, policy.markers)
        if problem:
            return f"{rule.name} {problem}"
    return None


def is_plausible_record(kind: str, record: dict | None) -> bool:
    return rejection_reason(kind, record) is None


def is_valid_notification(notification: dict | None) -> bool:
    """Filter applied to stored notifications (drops pre-policy junk)."""
    if not notification or not notification.get("data"):
        return False
    title = (notification.get("title") or "").strip()
    message = (notification.get("message") or "").strip()
    if _text_problem(title, NOTIFICATION_MIN_TITLE, TEST_MARKERS):
        return False
    if _text_problem(message, NOTIFICATION_MIN_MESSAGE, TEST_MARKERS):
        return False
    data = notification["data"]
    return any(data.get(k) for k in NOTIFICATION_SOURCE_KEYS)
