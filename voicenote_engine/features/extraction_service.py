"""Service layer for turning a voice transcript into categorized items.

The model output is treated as untrusted input: every call goes through the
validation pass, and any failure collapses into a single fallback note so the
caller always receives at least one item.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from voicenote_engine.interfaces.llm_interface import LLMInterface
from voicenote_engine.database.models import ItemType
from voicenote_engine.features.extraction_models import (
    CalendarEventDetails,
    ExtractionConfig,
    ItemCandidate,
    RawCalendarEvent,
    RawItem,
)

logger = logging.getLogger(__name__)

LOCAL_TIME_FORMAT = "%A, %B %d, %Y at %I:%M:%S %p %Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parses an ISO 8601 string into an aware UTC datetime, or None.

    Naive values are taken to be UTC already.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_utc(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def resolve_zone(name: Optional[str], default: str) -> ZoneInfo:
    """Returns the ZoneInfo for `name`, falling back to `default`, then UTC."""
    for candidate in (name, default):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown time zone '{candidate}', trying fallback.")
    return ZoneInfo("UTC")


def build_system_prompt(existing_category_names: Iterable[str], now_utc: datetime, zone: ZoneInfo) -> str:
    """Builds the context prompt: clock, time zone rules, categories and output schema."""
    names = sorted(set(existing_category_names))
    if names:
        category_list = f"Existing categories: {', '.join(names)}"
    else:
        category_list = "No existing categories - you can create new ones"

    utc_now = format_utc(now_utc)
    local_now = now_utc.astimezone(zone).strftime(LOCAL_TIME_FORMAT)
    zone_name = zone.key

    return f"""You are an AI assistant that turns voice notes into categorized, actionable items.

Current date and time in user's timezone ({zone_name}): {local_now}
Current UTC time: {utc_now}

IMPORTANT INSTRUCTIONS:
1. IDENTIFY ALL SEPARATE TASKS/ITEMS in the voice note - users often mention several things at once.
2. CREATE A SEPARATE ENTRY for each distinct task, reminder, note, contact action or calendar event.
3. A list of things that belong to one errand stays ONE item (e.g. "buy milk, eggs and bread" is a single shopping task).
4. CATEGORIZE APPROPRIATELY with short, specific category names.

TIMEZONE RULES:
- Times the user mentions ("3pm", "tomorrow at 3pm") are LOCAL TIME in {zone_name}.
- Convert every time to UTC before returning it.
- If a date is mentioned without a time, assume 9:00 AM local time.

CATEGORY RULES:
- PREFER an existing category whenever one fits. Do not create near-duplicates of existing names (e.g. "Groceries" vs "Grocery").
- Create a new specific category only when nothing existing fits.

{category_list}

ITEM TYPES:
- reminder: something to be reminded of at a time
- task: something to do
- note: information to keep
- contact_action: call, text or email someone
- calendar_event: an appointment or meeting with a start and end time

Examples of MULTIPLE ITEMS:
- "Remind me to call mom tomorrow and buy groceries" = 2 items
- "Doctor appointment at 3pm and also pay bills" = 2 items
- "Buy milk, eggs, and bread" = 1 item

Respond with valid JSON only:
{{
  "items": [
    {{
      "category": "string",
      "content": "string",
      "itemType": "reminder" | "task" | "note" | "contact_action" | "calendar_event",
      "dueDate": "ISO 8601 string in UTC, or null",
      "confidence": 0.0-1.0,
      "calendarEvent": {{
        "summary": "string",
        "description": "string or null",
        "startTime": "ISO 8601 string in UTC",
        "endTime": "ISO 8601 string in UTC",
        "durationMinutes": number
      }}
    }}
  ]
}}
Only include "calendarEvent" when itemType is "calendar_event"."""


def build_user_message(transcript: str) -> str:
    return f'Please process this voice note: "{transcript}"'


def parse_model_output(raw_response: str) -> List[Any]:
    """Extracts the `items` array from the model's JSON text.

    Raises:
        ValueError: If the text is not a JSON object with an `items` list.
    """
    text = (raw_response or "").strip()
    if text.startswith("```"):
        # Some backends wrap JSON in a markdown fence despite JSON mode
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Model output is not valid JSON: {e}") from e
    if not isinstance(parsed, dict) or not isinstance(parsed.get("items"), list):
        raise ValueError("Invalid response structure from model - no items array")
    return parsed["items"]


def _coerce_confidence(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    if confidence != confidence: # NaN
        return default
    return min(max(confidence, 0.0), 1.0)


def _clean_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def validate_candidate(raw: Any, now_utc: datetime, config: ExtractionConfig) -> Optional[ItemCandidate]:
    """Validates one raw item. Returns None when the item must be dropped."""
    if not isinstance(raw, dict):
        logger.warning(f"Skipping non-object item from model: {raw!r}")
        return None
    try:
        item = RawItem.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Skipping malformed item {raw!r}: {e}")
        return None

    category = (item.category or "").strip()
    content = (item.content or "").strip()
    item_type_value = (item.item_type or "").strip().lower()
    if not category or not content or not item_type_value:
        logger.warning(f"Skipping invalid item (missing category, content or itemType): {raw!r}")
        return None
    try:
        item_type = ItemType(item_type_value)
    except ValueError:
        logger.warning(f"Skipping item with unknown itemType '{item.item_type}'.")
        return None

    due_date = None
    if item.due_date:
        parsed_due = parse_timestamp(item.due_date)
        earliest = now_utc - timedelta(days=config.past_window_days)
        latest = now_utc + timedelta(days=config.future_window_days)
        if parsed_due is None:
            logger.warning(f"Invalid date from model, removing dueDate: {item.due_date}")
        elif parsed_due < earliest:
            logger.warning(f"Due date is too far in the past, removing: {item.due_date}")
        elif parsed_due > latest:
            logger.warning(f"Due date is too far in the future, removing: {item.due_date}")
        else:
            due_date = parsed_due

    calendar_event = None
    if item_type is ItemType.calendar_event:
        calendar_event = _validate_calendar_event(item, content, config)
        if calendar_event is None:
            item_type = ItemType.reminder

    return ItemCandidate(
        category=category,
        content=content,
        item_type=item_type,
        due_date=due_date,
        confidence=_coerce_confidence(item.confidence, config.default_confidence),
        calendar_event=calendar_event,
    )


def _validate_calendar_event(item: RawItem, content: str, config: ExtractionConfig) -> Optional[CalendarEventDetails]:
    """Returns a repaired calendar payload, or None to downgrade the item to a reminder."""
    if item.calendar_event is None:
        logger.warning(f"calendar_event item without calendarEvent payload, downgrading to reminder: '{content[:50]}'")
        return None
    try:
        payload = RawCalendarEvent.model_validate(item.calendar_event)
    except ValidationError:
        logger.warning(f"Malformed calendarEvent payload {item.calendar_event!r}, downgrading to reminder.")
        return None

    start_time = parse_timestamp(payload.start_time)
    end_time = parse_timestamp(payload.end_time)
    if start_time is None or end_time is None:
        logger.warning(
            f"Unparseable calendar times (start={payload.start_time!r}, end={payload.end_time!r}), downgrading to reminder."
        )
        return None

    if start_time >= end_time:
        logger.info(f"Calendar event does not end after it starts, repairing to a {config.default_event_minutes} minute window.")
        end_time = start_time + timedelta(minutes=config.default_event_minutes)
        duration_minutes = config.default_event_minutes
    else:
        duration_minutes = int((end_time - start_time).total_seconds() // 60)

    summary = _clean_text(payload.summary) or content
    description = _clean_text(payload.description) or None
    return CalendarEventDetails(
        summary=summary,
        description=description,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=duration_minutes,
    )


def validate_candidates(raw_items: List[Any], now_utc: datetime, config: ExtractionConfig) -> List[ItemCandidate]:
    """Runs the validation pass over every raw item, keeping survivors in order."""
    candidates: List[ItemCandidate] = []
    for raw in raw_items:
        candidate = validate_candidate(raw, now_utc, config)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


class ExtractionService:
    """Extracts validated item candidates from a transcript using an LLM backend."""

    def __init__(self, llm: LLMInterface, config: ExtractionConfig):
        self.llm = llm
        self.config = config

    def fallback_item(self, transcript: str) -> ItemCandidate:
        """The guaranteed output when extraction cannot be completed."""
        return ItemCandidate(
            category=self.config.fallback_category,
            content=transcript,
            item_type=ItemType.note,
            confidence=self.config.fallback_confidence,
        )

    def extract(
        self,
        transcript: str,
        existing_category_names: Iterable[str],
        now_utc: datetime,
        user_timezone: Optional[str] = None,
    ) -> List[ItemCandidate]:
        """Extracts every distinct actionable item from a transcript.

        Args:
            transcript: The finalized, non-empty transcript.
            existing_category_names: The user's category names, offered for reuse.
            now_utc: The current instant (aware or naive UTC).
            user_timezone: IANA zone name used to interpret spoken times.

        Returns:
            At least one ItemCandidate. Model, network or shape failures, and an
            empty validated result, all produce the single fallback item.
        """
        if now_utc.tzinfo is None:
            now_utc = now_utc.replace(tzinfo=timezone.utc)
        zone = resolve_zone(user_timezone, self.config.default_timezone)

        options = {"temperature": self.config.temperature, "max_tokens": self.config.max_tokens}
        if self.config.model:
            options["model"] = self.config.model

        try:
            system_prompt = build_system_prompt(existing_category_names, now_utc, zone)
            logger.debug(f"Sending extraction prompt to LLM:\n{system_prompt}")
            raw_response = self.llm.structured_completion(system_prompt, build_user_message(transcript), **options)
            logger.debug(f"Raw LLM response:\n{raw_response}")
            raw_items = parse_model_output(raw_response)
            candidates = validate_candidates(raw_items, now_utc, self.config)
        except Exception as e:
            logger.error(f"Error processing voice note with LLM, using fallback item: {e}", exc_info=True)
            return [self.fallback_item(transcript)]

        if not candidates:
            logger.warning("No valid items after validation, using fallback item.")
            return [self.fallback_item(transcript)]

        logger.info(f"Extracted {len(candidates)} item(s) from transcript.")
        return candidates
