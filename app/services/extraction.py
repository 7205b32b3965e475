"""LLM-backed structured menu extraction.

Turns page text (and optionally one menu image) into a :class:`MenuResult`
using OpenAI chat completions in JSON mode.  When the page has menu
images, the first one is sent to the vision model; if it cannot be
downloaded the text prompt is used instead.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from datetime import date
from typing import Any, Sequence

import httpx
from openai import APIError, AsyncOpenAI

from app.schemas.menu import MenuItem, MenuResult

logger = logging.getLogger(__name__)

_IMAGE_TIMEOUT = 15.0
_MAX_TEXT_CHARS = 12_000

# Index = date.weekday() (Monday = 0)
_CZECH_WEEKDAYS = ("pondělí", "úterý", "středa", "čtvrtek", "pátek", "sobota", "neděle")

# Czech and English names, Czech abbreviations and ISO numbers (Monday = 1)
_WEEKDAY_ALIASES = {
    alias: name
    for number, (name, english, short) in enumerate(
        zip(
            _CZECH_WEEKDAYS,
            ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"),
            ("po", "út", "st", "čt", "pá", "so", "ne"),
        ),
        start=1,
    )
    for alias in (name, english, short, str(number))
}

_PRICE_CHARS_RE = re.compile(r"[^\d.,]")
_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")

SYSTEM_PROMPT = """Jsi expert na extrakci a strukturování menu z restaurací. Tvá úloha je:
1. Najít menu pro zadaný den ({day_of_week}, {target_date})
2. Extrahovat všechny položky menu s kategoriemi, názvy, cenami a alergeny
3. Normalizovat ceny do číselného formátu
4. Identifikovat název restaurace
5. Rozpoznat, zda se jedná o denní menu (daily_menu: true) nebo týdenní menu

DŮLEŽITÉ INSTRUKCE:
- Pokud menu není explicitně označené datem nebo dnem v týdnu, extrahuj VŠECHNA dostupná menu na stránce
- Pro "polední nabídka" nebo "denní menu" extrahuj všechna jídla, která jsou zobrazená
- Pokud stránka obsahuje pouze jedno menu bez data, extrahuj ho jako menu pro zadaný den
- Pokud vidíš pouze odkazy nebo navigaci k menu, ale ne samotné položky, vrať prázdné menu_items
- Pokud nenajdeš žádné menu, vrať prázdné menu_items, ale zachovej restaurant_name

Odpověz POUZE validním JSON objektem s poli: restaurant_name (string), date (YYYY-MM-DD),
day_of_week (string), menu_items (pole objektů s category, name, price, allergens, weight,
description), daily_menu (boolean), source_url (string)."""


class ExtractionError(Exception):
    """Raised when the LLM call fails or returns unusable data."""

    pass


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------


def czech_weekday(day: date) -> str:
    """Czech weekday name for *day*, e.g. ``'středa'``."""
    return _CZECH_WEEKDAYS[day.weekday()]


def normalize_weekday(value: str) -> str:
    """Map ``'Wednesday'``, ``'st'`` or ``'3'`` to ``'středa'``; unknown input is returned as is."""
    return _WEEKDAY_ALIASES.get(value.strip().lower(), value)


def normalize_price(value: Any) -> float:
    """Convert ``145``, ``'145,-'``, ``'145 Kč'`` or ``'12,50 €'`` to a number (0.0 if none)."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _PRICE_CHARS_RE.sub("", str(value))
    if "." in cleaned and "," in cleaned:
        # "1.234,50" / "1,234.50": the last separator is the decimal one
        decimal = "," if cleaned.rfind(",") > cleaned.rfind(".") else "."
        thousands = "." if decimal == "," else ","
        cleaned = cleaned.replace(thousands, "")
    m = _NUMBER_RE.search(cleaned)
    if not m:
        return 0.0
    return float(m.group(0).replace(",", "."))


def normalize_weight(value: str) -> str:
    """``'150 G'`` → ``'150g'``."""
    return re.sub(r"\s+", "", value).lower()


def _normalize_items(raw_items: Any) -> list[MenuItem]:
    """Validate raw LLM items; entries without name or category are dropped."""
    if not isinstance(raw_items, list):
        return []

    items: list[MenuItem] = []
    for entry in raw_items:
        if not isinstance(entry, dict):
            continue
        name = str(entry.get("name") or "").strip()
        category = str(entry.get("category") or "").strip()
        if not name or not category:
            continue
        allergens = entry.get("allergens")
        weight = entry.get("weight")
        description = entry.get("description")
        items.append(
            MenuItem(
                category=category.lower(),
                name=name,
                price=normalize_price(entry.get("price", 0)),
                allergens=[str(a) for a in allergens] if isinstance(allergens, list) else None,
                weight=normalize_weight(str(weight)) if weight else None,
                description=str(description).strip() if description else None,
            )
        )
    return items


def _parse_json_response(content: str) -> dict[str, Any]:
    """Parse the model's JSON object, tolerating markdown code fences."""
    content = content.strip()
    if content.startswith("```"):
        lines = [line for line in content.split("\n") if not line.strip().startswith("```")]
        content = "\n".join(lines).strip()

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        # Try to find a JSON object in the response
        start = content.find("{")
        end = content.rfind("}")
        if start == -1 or end == -1:
            raise ExtractionError("Failed to parse LLM response as JSON") from None
        try:
            data = json.loads(content[start : end + 1])
        except json.JSONDecodeError as exc:
            raise ExtractionError(f"Failed to parse LLM response as JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ExtractionError("LLM response is not a JSON object")
    return data


def _mime_from_url(url: str) -> str:
    """Infer image MIME type from URL extension."""
    lower = url.lower().split("?")[0]
    if lower.endswith(".png"):
        return "image/png"
    if lower.endswith(".webp"):
        return "image/webp"
    if lower.endswith(".gif"):
        return "image/gif"
    return "image/jpeg"


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class MenuExtractor:
    """Structured menu extraction through the OpenAI chat completions API.

    Args:
        client: OpenAI client.
        model: Vision-capable chat model.
        temperature: Sampling temperature; low keeps output stable.
        http_client: Used to download menu images; a short-lived client
            is opened per download when omitted.
        user_agent: Sent with image downloads.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = "gpt-4o",
        temperature: float = 0.3,
        http_client: httpx.AsyncClient | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.client = client
        self.model = model
        self.temperature = temperature
        self.http_client = http_client
        self.user_agent = user_agent

    async def _download_image(self, url: str) -> tuple[bytes, str]:
        headers = {"User-Agent": self.user_agent} if self.user_agent else {}
        if self.http_client is not None:
            resp = await self.http_client.get(url, headers=headers, timeout=_IMAGE_TIMEOUT)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                resp = await client.get(url, headers=headers, timeout=_IMAGE_TIMEOUT)
        resp.raise_for_status()
        content_type = resp.headers.get("content-type", "").lower()
        mime = content_type.split(";")[0] if content_type.startswith("image/") else _mime_from_url(url)
        return resp.content, mime

    def _text_message(self, text: str, target_date: str, day_of_week: str) -> dict[str, Any]:
        snippet = text[:_MAX_TEXT_CHARS]
        if len(text) > _MAX_TEXT_CHARS:
            snippet += "..."
        return {
            "role": "user",
            "content": (
                f"Extrahuj menu z následujícího obsahu stránky. Hledám menu pro den "
                f"{day_of_week} ({target_date}), ale pokud menu není označené datem, "
                f"extrahuj všechna dostupná menu:\n\n{snippet}\n\n"
                "Vrať strukturovaná data v JSON formátu."
            ),
        }

    async def _image_message(
        self, image_url: str, target_date: str, day_of_week: str
    ) -> dict[str, Any] | None:
        try:
            image_bytes, mime = await self._download_image(image_url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Failed to download menu image %s: %s", image_url, exc)
            return None

        b64 = base64.b64encode(image_bytes).decode("utf-8")
        return {
            "role": "user",
            "content": [
                {
                    "type": "text",
                    "text": (
                        f"Extrahuj menu z tohoto obrázku. Hledám menu pro den {day_of_week} "
                        f"({target_date}). Extrahuj všechna jídla s kategoriemi, názvy, "
                        "cenami a alergeny."
                    ),
                },
                {"type": "image_url", "image_url": {"url": f"data:{mime};base64,{b64}"}},
            ],
        }

    async def extract(
        self,
        text: str,
        images: Sequence[str] | None = None,
        *,
        source_url: str,
        target_date: str,
        day_of_week: str,
    ) -> MenuResult:
        """Extract the menu for *target_date* from page content.

        Args:
            text: Normalized page text.
            images: Candidate menu image URLs; only the first is sent.
            source_url: Page the content came from.
            target_date: ISO date the menu is wanted for.
            day_of_week: Weekday name of *target_date*.

        Returns:
            The structured menu.

        Raises:
            ExtractionError: If the API call fails or its answer is unusable.
        """
        messages: list[dict[str, Any]] = [
            {
                "role": "system",
                "content": SYSTEM_PROMPT.format(
                    day_of_week=day_of_week, target_date=target_date
                ),
            }
        ]
        user_message = None
        if images:
            logger.info("Found %d menu image(s), using vision input", len(images))
            user_message = await self._image_message(images[0], target_date, day_of_week)
        if user_message is None:
            user_message = self._text_message(text, target_date, day_of_week)
        messages.append(user_message)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except APIError as exc:
            raise ExtractionError(f"OpenAI API error: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ExtractionError("No response from LLM")

        data = _parse_json_response(content)
        items = _normalize_items(data.get("menu_items"))
        daily_menu = data.get("daily_menu")
        answered_day = data.get("day_of_week")
        if isinstance(answered_day, str) and answered_day.strip():
            if normalize_weekday(answered_day) != day_of_week:
                logger.info(
                    "LLM answered for %s but %s (%s) was requested",
                    answered_day,
                    day_of_week,
                    target_date,
                )
        logger.info("Extracted %d menu item(s) from %s", len(items), source_url)

        return MenuResult(
            restaurant_name=str(data.get("restaurant_name") or "Unknown Restaurant"),
            date=target_date,
            day_of_week=day_of_week,
            menu_items=items,
            daily_menu=daily_menu if isinstance(daily_menu, bool) else True,
            source_url=source_url,
        )
