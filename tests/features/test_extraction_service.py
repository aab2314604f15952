"""Unit tests for the extraction service and its validation pass."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from voicenote_engine.database.models import ItemType
from voicenote_engine.features.extraction_models import ExtractionConfig
from voicenote_engine.features.extraction_service import (
    ExtractionService,
    build_system_prompt,
    parse_model_output,
    parse_timestamp,
    resolve_zone,
    validate_candidate,
)
from voicenote_engine.interfaces.llm_interface import LLMInterface

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

@pytest.fixture
def mock_llm_service():
    """Fixture for a mocked LLMInterface."""
    return MagicMock(spec=LLMInterface)

@pytest.fixture
def config():
    return ExtractionConfig()

@pytest.fixture
def service(mock_llm_service, config):
    return ExtractionService(llm=mock_llm_service, config=config)

def _respond_with(mock_llm_service, items):
    mock_llm_service.structured_completion.return_value = json.dumps({"items": items})

# --- Decomposition and fallback ---

def test_extract_decomposes_multiple_items(service, mock_llm_service):
    _respond_with(mock_llm_service, [
        {"category": "Family", "content": "Call mom", "itemType": "contact_action",
         "dueDate": "2024-05-02T13:00:00Z", "confidence": 0.9},
        {"category": "Shopping", "content": "Buy groceries", "itemType": "task", "confidence": 0.8},
    ])

    candidates = service.extract("remind me to call mom tomorrow and buy groceries", [], NOW)

    assert len(candidates) == 2
    assert [c.category for c in candidates] == ["Family", "Shopping"]
    assert candidates[0].item_type is ItemType.contact_action
    assert candidates[0].due_date == datetime(2024, 5, 2, 13, 0, tzinfo=timezone.utc)
    assert candidates[1].due_date is None

def test_extract_passes_configured_options(service, mock_llm_service):
    _respond_with(mock_llm_service, [{"category": "Notes", "content": "Idea", "itemType": "note"}])

    service.extract("an idea", ["Notes", "Work"], NOW, "Europe/Berlin")

    args, kwargs = mock_llm_service.structured_completion.call_args
    system_prompt, user_message = args
    assert kwargs == {"temperature": 0.3, "max_tokens": 1000}
    assert "Existing categories: Notes, Work" in system_prompt
    assert "Europe/Berlin" in system_prompt
    assert user_message == 'Please process this voice note: "an idea"'

def test_extract_includes_model_override_when_configured(mock_llm_service):
    service = ExtractionService(llm=mock_llm_service, config=ExtractionConfig(model="gpt-test"))
    _respond_with(mock_llm_service, [{"category": "Notes", "content": "Idea", "itemType": "note"}])

    service.extract("an idea", [], NOW)

    assert mock_llm_service.structured_completion.call_args.kwargs["model"] == "gpt-test"

@pytest.mark.parametrize("raw_response", [
    "not json at all",
    json.dumps({"result": []}),
    json.dumps([{"category": "x"}]),
])
def test_extract_falls_back_on_bad_model_output(service, mock_llm_service, raw_response):
    mock_llm_service.structured_completion.return_value = raw_response

    candidates = service.extract("just a thought", [], NOW)

    assert len(candidates) == 1
    fallback = candidates[0]
    assert fallback.category == "General"
    assert fallback.content == "just a thought"
    assert fallback.item_type is ItemType.note
    assert fallback.confidence == pytest.approx(0.1)

def test_extract_falls_back_when_llm_raises(service, mock_llm_service):
    mock_llm_service.structured_completion.side_effect = TimeoutError("model timed out")

    candidates = service.extract("call the bank", [], NOW)

    assert len(candidates) == 1
    assert candidates[0].category == "General"

def test_extract_falls_back_when_every_item_is_invalid(service, mock_llm_service):
    _respond_with(mock_llm_service, [
        {"category": "", "content": "no category", "itemType": "task"},
        {"category": "Work", "content": "bad type", "itemType": "meeting"},
    ])

    candidates = service.extract("something", [], NOW)

    assert len(candidates) == 1
    assert candidates[0].content == "something"
    assert candidates[0].item_type is ItemType.note

def test_parse_model_output_strips_markdown_fence():
    raw = '```json\n{"items": [{"category": "A"}]}\n```'
    assert parse_model_output(raw) == [{"category": "A"}]

# --- Date sanitization ---

@pytest.mark.parametrize("due_date", [
    "not-a-date",
    (NOW - timedelta(days=31)).isoformat(),
    (NOW + timedelta(days=366)).isoformat(),
    1714600000000,
    ["2024-05-02"],
])
def test_out_of_window_or_invalid_due_date_is_removed(config, due_date):
    raw = {"category": "Work", "content": "Send report", "itemType": "task", "dueDate": due_date}
    candidate = validate_candidate(raw, NOW, config)
    assert candidate is not None
    assert candidate.due_date is None

def test_due_date_inside_window_is_kept(config):
    raw = {"category": "Work", "content": "Send report", "itemType": "task",
           "dueDate": (NOW - timedelta(days=29)).isoformat()}
    candidate = validate_candidate(raw, NOW, config)
    assert candidate.due_date == NOW - timedelta(days=29)

def test_parse_timestamp_handles_zulu_and_naive_values():
    assert parse_timestamp("2024-05-01T10:00:00Z") == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2024-05-01T10:00:00") == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2024-05-01T12:00:00+02:00") == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    assert parse_timestamp(None) is None
    assert parse_timestamp(42) is None

def test_parse_timestamp_handles_basic_iso_format():
    assert parse_timestamp("20240502T150000Z") == datetime(2024, 5, 2, 15, tzinfo=timezone.utc)

# --- Confidence coercion ---

@pytest.mark.parametrize("confidence, expected", [
    (0.75, 0.75),
    ("0.6", 0.6),
    (None, 0.5),
    ("high", 0.5),
    (1.7, 1.0),
    (-0.2, 0.0),
])
def test_confidence_is_coerced_and_clamped(config, confidence, expected):
    raw = {"category": "Notes", "content": "x", "itemType": "note", "confidence": confidence}
    assert validate_candidate(raw, NOW, config).confidence == pytest.approx(expected)

# --- Calendar repair ---

def test_calendar_event_with_end_before_start_is_repaired(config):
    raw = {
        "category": "Health", "content": "Dentist", "itemType": "calendar_event",
        "calendarEvent": {
            "summary": "Dentist appointment",
            "startTime": "2024-05-02T15:00:00Z",
            "endTime": "2024-05-02T14:00:00Z",
            "durationMinutes": 30,
        },
    }
    candidate = validate_candidate(raw, NOW, config)

    assert candidate.item_type is ItemType.calendar_event
    event = candidate.calendar_event
    assert event.start_time == datetime(2024, 5, 2, 15, tzinfo=timezone.utc)
    assert event.end_time == datetime(2024, 5, 2, 16, tzinfo=timezone.utc)
    assert event.duration_minutes == 60
    assert event.end_time > event.start_time

def test_calendar_event_duration_is_derived_from_times(config):
    raw = {
        "category": "Work", "content": "Standup", "itemType": "calendar_event",
        "calendarEvent": {"startTime": "2024-05-02T09:00:00Z", "endTime": "2024-05-02T09:15:00Z",
                          "durationMinutes": "lots"},
    }
    event = validate_candidate(raw, NOW, config).calendar_event
    assert event.duration_minutes == 15
    assert event.summary == "Standup"

@pytest.mark.parametrize("calendar_event", [
    None,
    {"summary": "Lunch", "startTime": "tomorrow noon", "endTime": "2024-05-02T13:00:00Z"},
    {"summary": "Lunch", "startTime": 1714651200, "endTime": 1714654800},
    "tomorrow at 3pm",
    ["2024-05-02T12:00:00Z", "2024-05-02T13:00:00Z"],
])
def test_calendar_event_without_usable_payload_becomes_reminder(config, calendar_event):
    raw = {"category": "Social", "content": "Lunch with Sam", "itemType": "calendar_event"}
    if calendar_event is not None:
        raw["calendarEvent"] = calendar_event
    candidate = validate_candidate(raw, NOW, config)
    assert candidate.item_type is ItemType.reminder
    assert candidate.content == "Lunch with Sam"
    assert candidate.calendar_event is None

def test_calendar_event_with_equal_times_is_repaired(config):
    raw = {
        "category": "Health", "content": "Dentist", "itemType": "calendar_event",
        "calendarEvent": {"startTime": "2024-05-02T15:00:00Z", "endTime": "2024-05-02T15:00:00Z"},
    }
    event = validate_candidate(raw, NOW, config).calendar_event

    assert event.start_time == datetime(2024, 5, 2, 15, tzinfo=timezone.utc)
    assert event.end_time == datetime(2024, 5, 2, 16, tzinfo=timezone.utc)
    assert event.duration_minutes == 60

def test_calendar_event_with_non_text_summary_uses_content(config):
    raw = {
        "category": "Health", "content": "Dentist", "itemType": "calendar_event",
        "calendarEvent": {"summary": 12, "description": ["x"],
                          "startTime": "2024-05-02T15:00:00Z", "endTime": "2024-05-02T15:30:00Z"},
    }
    event = validate_candidate(raw, NOW, config).calendar_event
    assert event.summary == "Dentist"
    assert event.description is None

def test_only_item_with_bad_fields_is_kept_instead_of_fallback(service, mock_llm_service):
    _respond_with(mock_llm_service, [
        {"category": "Social", "content": "Lunch with Sam", "itemType": "calendar_event",
         "dueDate": 1714600000000, "calendarEvent": "tomorrow at noon"},
    ])

    candidates = service.extract("lunch with sam tomorrow", [], NOW)

    assert len(candidates) == 1
    assert candidates[0].category == "Social"
    assert candidates[0].item_type is ItemType.reminder
    assert candidates[0].due_date is None

def test_non_object_item_is_dropped(config):
    assert validate_candidate("call mom", NOW, config) is None

# --- Prompt and time zones ---

def test_system_prompt_without_categories(config):
    prompt = build_system_prompt([], NOW, ZoneInfo("America/New_York"))
    assert "No existing categories - you can create new ones" in prompt
    assert "Current UTC time: 2024-05-01T12:00:00Z" in prompt
    assert "9:00 AM" in prompt

def test_resolve_zone_falls_back_to_default_then_utc():
    assert resolve_zone("Not/AZone", "Europe/Paris").key == "Europe/Paris"
    assert resolve_zone(None, "Also/Bogus").key == "UTC"
