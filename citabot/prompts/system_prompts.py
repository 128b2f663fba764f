"""
System prompt construction from the business profile.

The profile is re-read whenever its file changes, so prompts are built per
call from the snapshot in hand rather than frozen at import time.
Chat-specific rules keep replies short and friendly for messaging apps.
"""

from typing import Optional

from citabot.schemas.business_schema import BusinessProfile, Location, Service

DEFAULT_SYSTEM_PROMPT = "Eres un asistente virtual útil y profesional."
DEFAULT_PERSONALITY = "Sé profesional, amigable y servicial."

TONE_PROMPTS = {
    "formal": "Sé formal, profesional y cortés. Usa usted y mantenga un tono respetuoso.",
    "friendly": "Sé amigable, cercano y cálido. Usa un tono acogedor pero profesional.",
    "casual": "Sé relajado, informal y cercano. Puedes usar tú y un lenguaje más desenfadado.",
}

LANGUAGE_NAMES = {
    "en": "inglés",
    "fr": "francés",
    "pt": "portugués",
    "de": "alemán",
    "it": "italiano",
    "zh": "chino",
}

DAY_LABELS = (
    ("monday", "Lunes"),
    ("tuesday", "Martes"),
    ("wednesday", "Miércoles"),
    ("thursday", "Jueves"),
    ("friday", "Viernes"),
    ("saturday", "Sábado"),
    ("sunday", "Domingo"),
)

CHAT_STYLE_RULES = """
**REGLAS IMPORTANTES:**
- Responde de manera natural y conversacional
- Proporciona información precisa sobre horarios, servicios y precios
- Si te preguntan sobre algo que no está en la información del negocio, dilo claramente
- Sé breve y conciso en tus respuestas (máximo 3-4 líneas)
- Usa emojis ocasionalmente para hacer las respuestas más amigables
- Si el cliente quiere agendar una cita, recopila: nombre, servicio deseado, fecha y hora preferida
- NUNCA inventes información que no esté en los datos del negocio

**RECUERDA:**
Tu objetivo es ayudar a los clientes de manera efectiva y representar bien al negocio."""


def strip_html(text: str) -> str:
    """Drop the paragraph and line-break tags the profile editor leaves behind."""
    return text.replace("<br>", " ").replace("</p>", " ").replace("<p>", "").strip()


def _format_service(service: Service) -> list[str]:
    if service.on_promotion:
        line = f"- {service.title}: ${service.promo_price:.2f} (antes ${service.original_price:.2f}) 🎉"
    else:
        line = f"- {service.title}: ${service.price:.2f}"
    lines = [line]
    description = strip_html(service.description)
    if description:
        lines.append(f"  {description}")
    return lines


def _format_location(location: Location) -> list[str]:
    lines = ["", "**UBICACIÓN:**"]
    address = f"- Dirección: {location.address}"
    if location.number:
        address += f" #{location.number}"
    lines.append(address)
    if location.neighborhood:
        lines.append(f"- Colonia: {location.neighborhood}")
    if location.city and location.state:
        lines.append(f"- Ciudad: {location.city}, {location.state}")
    if location.between_streets:
        lines.append(f"- {location.between_streets}")
    return lines


def build_business_info(profile: BusinessProfile) -> str:
    """Business facts section: location, hours, holidays, prices, staff, social."""
    lines = [
        "**INFORMACIÓN DEL NEGOCIO:**",
        f"- Nombre: {profile.agent_name}",
        f"- Tipo: {profile.business_type}",
    ]

    if profile.location.address:
        lines.extend(_format_location(profile.location))

    lines.extend(["", "**HORARIOS DE ATENCIÓN:**"])
    labels = dict(DAY_LABELS)
    for key, label in DAY_LABELS:
        day = getattr(profile.schedule, key)
        if day.open:
            lines.append(f"- {label}: {day.start} - {day.end}")

    if profile.holidays:
        lines.extend(["", "**DÍAS FESTIVOS (CERRADO):**"])
        lines.extend(f"- {h.date}: {h.name}" for h in profile.holidays)

    if profile.services:
        lines.extend(["", "**SERVICIOS Y PRECIOS:**"])
        for service in profile.services:
            lines.extend(_format_service(service))

    if profile.workers:
        lines.extend(["", "**PERSONAL DISPONIBLE:**"])
        for worker in profile.workers:
            days = ", ".join(labels[d] for d in worker.days if d in labels)
            lines.append(f"- {worker.name}: {worker.start_time} a {worker.end_time} ({days})")

    social = profile.social_media
    if social.facebook or social.instagram:
        lines.extend(["", "**REDES SOCIALES:**"])
        for label, value in (
            ("Facebook", social.facebook),
            ("Instagram", social.instagram),
            ("Twitter/X", social.twitter),
            ("LinkedIn", social.linkedin),
        ):
            if value:
                lines.append(f"- {label}: {value}")

    return "\n".join(lines) + "\n"


def build_personality(profile: Optional[BusinessProfile]) -> str:
    if profile is None:
        return DEFAULT_PERSONALITY

    tone = profile.personality.tone
    if tone == "custom":
        personality = strip_html(profile.personality.custom_tone) or DEFAULT_PERSONALITY
    else:
        personality = TONE_PROMPTS.get(tone, DEFAULT_PERSONALITY)

    languages = [
        LANGUAGE_NAMES[code]
        for code in profile.personality.additional_languages
        if code in LANGUAGE_NAMES
    ]
    if languages:
        personality += (
            " Puedes responder en español y también en "
            f"{', '.join(languages)} si el cliente lo solicita."
        )
    return personality


def build_system_prompt(profile: Optional[BusinessProfile]) -> str:
    """Full system prompt for the text-generation service."""
    if profile is None:
        return DEFAULT_SYSTEM_PROMPT
    return (
        f"Eres el asistente virtual de {profile.agent_name}, un {profile.business_type}.\n\n"
        f"**TU PERSONALIDAD:**\n{build_personality(profile)}\n\n"
        f"{build_business_info(profile)}\n"
        f"{CHAT_STYLE_RULES}"
    )


def build_business_context(profile: BusinessProfile) -> str:
    """Catalog summary handed to the NLU service so extractions match real names."""
    parts: list[str] = []
    if profile.services:
        parts.append("SERVICIOS DISPONIBLES:")
        parts.extend(f"- {service.title}" for service in profile.services)
    if profile.workers:
        if parts:
            parts.append("")
        parts.append("PERSONAL DISPONIBLE:")
        parts.extend(f"- {worker.name}" for worker in profile.workers)
    return "\n".join(parts)
