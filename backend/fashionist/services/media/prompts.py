"""Prompt enhancement pipeline — raw request + style context -> provider-ready instruction.

Everything here is pure. The one deliberate source of variety is the
lighting phrase, drawn from a fixed list through an injectable ``random.Random``;
that is why the cache key is derived from the request, never from the
enhanced string.
"""

from __future__ import annotations

import logging
import random
from typing import Optional

from .contracts import StyleContext

logger = logging.getLogger(__name__)

DEFAULT_MAGAZINE = "vogue"
DEFAULT_SHOOT = "editorial"
DEFAULT_MARKET = "mexico"
DALLE_MAX_PROMPT_CHARS = 4000

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

MAGAZINE_PROMPTS: dict[str, str] = {
    "vogue": "High fashion editorial photography, ultra-sophisticated, avant-garde, luxury fashion shoot, "
    "professional model, dramatic lighting, minimalist composition, Italian Vogue style",
    "cosmopolitan": "Glamorous fashion photography, confident and empowering, vibrant colors, contemporary style, "
    "accessible luxury, modern woman aesthetic, dynamic poses",
    "menshealth": "Masculine fashion editorial, athletic-inspired styling, contemporary menswear, confident poses, "
    "dynamic lighting, fitness-conscious style, modern gentleman",
    "elle": "Chic editorial photography, feminine elegance, contemporary fashion, sophisticated styling, "
    "French elegance, artistic composition",
    "harpers": "Artistic fashion photography, sophisticated editorial style, timeless elegance, "
    "haute couture inspiration, museum-quality composition",
    "gq": "Luxury menswear editorial, sophisticated gentleman style, impeccable tailoring, "
    "confident masculine aesthetic, premium quality",
}

SHOOT_STYLES: dict[str, str] = {
    "studio": "professional studio lighting, clean backdrop, controlled environment, commercial quality",
    "street": "urban street photography, natural lighting, authentic environment, candid moments, city backdrop",
    "editorial": "high-end editorial photography, artistic composition, magazine cover quality",
    "commercial": "commercial fashion photography, product-focused, clear product visibility",
    "runway": "fashion show photography, catwalk setting, dramatic presentation, high-energy atmosphere",
}

SEASONAL_COLORS: dict[str, str] = {
    "spring": "pastel tones, soft pinks, fresh greens, light blues, cream whites, floral colors",
    "summer": "vibrant colors, coral, turquoise, sunny yellows, bright whites, tropical tones",
    "autumn": "warm earth tones, burnt oranges, deep burgundy, golden browns, rich textures",
    "winter": "deep jewel tones, emerald greens, sapphire blues, classic blacks, metallic accents",
    "current": "contemporary color palette, trending seasonal colors",
}

OCCASION_STYLES: dict[str, str] = {
    "work": "professional business attire, sophisticated office wear, elegant power dressing",
    "party": "glamorous evening wear, party-ready outfits, celebration fashion",
    "casual": "relaxed everyday fashion, comfortable chic, effortless style",
    "formal": "elegant formal wear, black-tie fashion, sophisticated evening attire",
    "wedding": "wedding guest fashion, celebration attire, elegant formal wear",
    "versatile": "versatile transitional pieces, day-to-night fashion",
}

CULTURAL_CONTEXT: dict[str, str] = {
    "mexico": "Mexican market appeal, warm climate consideration, vibrant color appreciation, cultural elegance",
    "latinamerica": "Latin American fashion sensibility, tropical climate adaptation, colorful aesthetic",
    "global": "international fashion appeal, universally flattering styles",
}

MODEL_PHRASES: dict[str, str] = {
    "female": "professional female fashion model",
    "male": "professional male fashion model",
    "unisex": "androgynous fashion model",
}

# Spanish values sent by the web client.
ALIASES: dict[str, str] = {
    "primavera": "spring",
    "verano": "summer",
    "otoño": "autumn",
    "otono": "autumn",
    "fall": "autumn",
    "invierno": "winter",
    "actual": "current",
    "trabajo": "work",
    "oficina": "work",
    "fiesta": "party",
    "boda": "wedding",
    "versatil": "versatile",
    "versátil": "versatile",
}

TECHNICAL_SPECS = (
    "professional fashion photography",
    "high resolution 4K quality",
    "detailed fabric textures",
    "color-accurate reproduction",
    "magazine cover quality",
    "trend-forward styling",
    "impeccable attention to detail",
)

NEGATIVE_TERMS = (
    "low quality",
    "blurry",
    "distorted",
    "amateur photography",
    "poor lighting",
    "unflattering angles",
    "deformed hands",
)

LIGHTING_VARIANTS = (
    "dramatic rim lighting",
    "soft golden hour light",
    "crisp beauty-dish lighting",
    "cinematic window light",
    "high-contrast studio strobes",
)

FLUX_CORE = (
    "ultra-detailed",
    "photorealistic",
    "perfect fabric rendering",
    "accurate color reproduction",
    "studio-grade lighting",
)

FLUX_MODEL_OPTIMIZATIONS: dict[str, tuple[str, ...]] = {
    "flux-schnell": ("clean composition", "sharp focus", "vibrant colors", "clear details"),
    "flux-dev": ("sophisticated composition", "nuanced lighting", "editorial quality", "magazine cover worthy"),
    "flux-pro": ("ultra-high resolution", "museum-quality photography", "artistic composition", "award-winning photography"),
}

MAGAZINE_OPTIMIZATIONS: dict[str, tuple[str, ...]] = {
    "vogue": ("haute couture", "avant-garde fashion", "luxury aesthetic"),
    "cosmopolitan": ("contemporary fashion", "accessible luxury", "empowering style"),
    "elle": ("chic elegance", "French sophistication", "timeless style"),
    "gq": ("masculine sophistication", "gentleman style", "refined masculinity"),
}

FASHION_PROMPT_TEMPLATES: dict[str, str] = {
    "elegant_dress": "Elegant evening dress on sophisticated model, luxury fabric with perfect drape, refined silhouette",
    "casual_set": "Chic casual ensemble, comfortable yet stylish, perfect for everyday elegance",
    "business_suit": "Professional business suit, empowering style, modern workplace fashion",
    "bohemian": "Bohemian-inspired outfit, free-spirited fashion, artistic and unconventional style",
    "formal_suit": "Sophisticated men's formal suit, impeccable tailoring, classic masculine elegance",
    "menswear_casual": "Contemporary men's casual wear, relaxed sophistication, modern gentleman style",
    "minimalist": "Minimalist fashion design, clean lines, understated elegance, modern simplicity",
    "summer": "Summer fashion collection, light fabrics, breathable materials, warm weather styling",
    "winter": "Winter fashion ensemble, layered styling, warm textures, cold weather elegance",
    "wedding": "Wedding guest fashion, celebration attire, elegant formal wear",
}

# Keyword fragment -> template, checked in order.
KEYWORD_TEMPLATES: tuple[tuple[str, str], ...] = (
    ("vestido", "elegant_dress"),
    ("dress", "elegant_dress"),
    ("bohem", "bohemian"),
    ("trabajo", "business_suit"),
    ("office", "business_suit"),
    ("formal", "formal_suit"),
    ("hombre", "menswear_casual"),
    ("menswear", "menswear_casual"),
    ("minimal", "minimalist"),
    ("verano", "summer"),
    ("summer", "summer"),
    ("invierno", "winter"),
    ("winter", "winter"),
    ("boda", "wedding"),
    ("wedding", "wedding"),
    ("casual", "casual_set"),
)


def canonical_term(value: str) -> str:
    key = value.strip().lower()
    return ALIASES.get(key, key)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def _style_layers(style: StyleContext) -> list[str]:
    """Modifiers derived from the structured style context, in a fixed order."""
    layers: list[str] = []

    seasons = sorted({canonical_term(s) for s in style.seasons}) or ["current"]
    for season in seasons:
        layers.append(SEASONAL_COLORS.get(season, f"{season} seasonal palette"))

    occasions = sorted({canonical_term(o) for o in style.occasions}) or ["versatile"]
    for occasion in occasions:
        layers.append(OCCASION_STYLES.get(occasion, f"styled for {occasion}"))

    if style.colors:
        layers.append("color story built around " + ", ".join(style.colors))
    if style.styles:
        layers.append("styling: " + ", ".join(style.styles))
    if style.model:
        layers.append(MODEL_PHRASES[style.model])

    layers.append(CULTURAL_CONTEXT[style.target_market or DEFAULT_MARKET])
    return layers


def flux_optimizations(flux_model: str, magazine_style: str) -> str:
    terms = list(FLUX_CORE)
    terms.extend(FLUX_MODEL_OPTIMIZATIONS.get(flux_model, FLUX_MODEL_OPTIMIZATIONS["flux-dev"]))
    terms.extend(MAGAZINE_OPTIMIZATIONS.get(magazine_style, ()))
    return ", ".join(terms)


def enhance_prompt(
    prompt: str,
    style: Optional[StyleContext] = None,
    provider_hint: str = "generic",
    *,
    flux_model: str = "flux-dev",
    rng: Optional[random.Random] = None,
) -> str:
    """Layer style, market and technical modifiers onto *prompt*.

    ``provider_hint`` picks the vendor phrasing: ``flux`` (comma-dense tag
    list plus FLUX tier terms), ``dalle`` (natural sentences, length-capped),
    ``gemini`` (sectioned brief) or ``generic``.
    """
    style = style or StyleContext()
    chooser = rng or random
    magazine = style.magazine_style or DEFAULT_MAGAZINE
    shoot = style.shoot_type or DEFAULT_SHOOT
    base = prompt.strip()
    lighting = chooser.choice(LIGHTING_VARIANTS)
    layers = _style_layers(style)

    if provider_hint == "gemini":
        enhanced = (
            f"Professional fashion photography: {base}.\n"
            f"Style: {MAGAZINE_PROMPTS[magazine]}; {SHOOT_STYLES[shoot]}.\n"
            f"Context: {'; '.join(layers)}.\n"
            f"Lighting: {lighting}. Quality: {', '.join(TECHNICAL_SPECS)}."
        )
    elif provider_hint == "dalle":
        enhanced = (
            f"A {shoot} fashion photograph in the spirit of {magazine.title()} magazine: {base}. "
            f"The scene uses {lighting}. {'. '.join(layer.capitalize() for layer in layers)}. "
            f"Rendered as {', '.join(TECHNICAL_SPECS[:4])}. Avoid: {', '.join(NEGATIVE_TERMS)}."
        )
        enhanced = enhanced[:DALLE_MAX_PROMPT_CHARS]
    else:
        parts = [MAGAZINE_PROMPTS[magazine], base, SHOOT_STYLES[shoot], lighting, *layers, ", ".join(TECHNICAL_SPECS)]
        enhanced = ", ".join(parts) + f". Avoid: {', '.join(NEGATIVE_TERMS)}"
        if provider_hint == "flux":
            enhanced += f", {flux_optimizations(flux_model, magazine)}"

    logger.debug("Enhanced prompt (%s, %s): %.100s", provider_hint, magazine, enhanced)
    return enhanced


def smart_base_prompt(keywords: list[str]) -> str:
    """Pick the template that best matches *keywords* (first match wins)."""
    for keyword in keywords:
        lowered = keyword.lower()
        for fragment, template in KEYWORD_TEMPLATES:
            if fragment in lowered:
                return FASHION_PROMPT_TEMPLATES[template]
    return FASHION_PROMPT_TEMPLATES["casual_set"]


def generate_prompt_variations(
    prompt: str,
    count: int = 3,
    *,
    provider_hint: str = "generic",
    rng: Optional[random.Random] = None,
) -> list[str]:
    magazines = ("vogue", "cosmopolitan", "elle")
    shoots = ("editorial", "studio", "street")
    return [
        enhance_prompt(
            prompt,
            StyleContext(magazine_style=magazines[i % 3], shoot_type=shoots[i % 3]),
            provider_hint,
            rng=rng,
        )
        for i in range(max(0, count))
    ]
